"""
Purchase order domain logic.

Nothing in this package executes queries: it normalizes user input,
reconciles line sets into header totals, projects header edits onto the
deployment's column set, and summarizes stored lines for read views.
"""
