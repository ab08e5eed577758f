"""
Programmatic Alembic migration runner for the purchase order store.

Runs without an alembic.ini by pointing Alembic at this package's migrations
directory and the URL from src.db.config.

Usage examples:
    python -m src.db.run_migrations upgrade head
    python -m src.db.run_migrations downgrade -1
    python -m src.db.run_migrations current
"""

import sys
from pathlib import Path
from typing import Callable, Dict, List

from alembic import command
from alembic.config import Config

from src.db.config import get_settings

# Command name -> (callable, default positional args)
_COMMANDS: Dict[str, tuple[Callable[..., object], List[str]]] = {
    "upgrade": (command.upgrade, ["head"]),
    "downgrade": (command.downgrade, ["-1"]),
    "history": (command.history, []),
    "current": (command.current, []),
    "heads": (command.heads, []),
}


# PUBLIC_INTERFACE
def build_config() -> Config:
    """Alembic Config bound to the packaged migrations and the configured database."""
    cfg = Config()
    script_location = Path(__file__).resolve().parent / "migrations"
    cfg.set_main_option("script_location", str(script_location))
    # env.py builds its own async engine; this URL serves offline mode.
    cfg.set_main_option("sqlalchemy.url", get_settings().sync_database_url)
    return cfg


# PUBLIC_INTERFACE
def main(argv: List[str] | None = None) -> None:
    """Run an Alembic command with programmatic configuration."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("No Alembic arguments provided. Example: upgrade head")
        sys.exit(1)

    cmd, other = args[0], args[1:]
    if cmd not in _COMMANDS:
        print(f"Unsupported Alembic command: {cmd}")
        sys.exit(2)

    func, defaults = _COMMANDS[cmd]
    func(build_config(), *(other or defaults))


if __name__ == "__main__":
    main()
