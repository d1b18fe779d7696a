"""
Database package for modfeed.

Public API:
    - db_connection: Shared ConnectionManager (single aiosqlite connection)
    - database: Global Database coordinator (open + schema)
"""
