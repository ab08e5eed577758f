"""
Repository layer for data access.

Repositories encapsulate the SQLAlchemy queries for purchase order versions,
their lines, suppliers and the unit catalogue. They never commit; the calling
service owns the transaction.
"""
