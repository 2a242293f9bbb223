"""
Service layer.

Each service encapsulates the business logic for one domain and talks
to SQLite through ``core.db.get_connection``.  Client errors are
raised as ``ValueError`` (``PermissionError`` for access violations)
and translated to HTTP responses by the endpoint modules.
"""
