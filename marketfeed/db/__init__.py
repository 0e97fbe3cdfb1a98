"""Database package: ORM models, connection helpers and the store adapter."""
