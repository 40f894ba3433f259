"""Persistence adapters built on SQLAlchemy 2.0 async."""
