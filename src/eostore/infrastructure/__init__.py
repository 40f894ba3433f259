"""Infrastructure layer - the relational store behind the catalog.

This layer contains the SQLAlchemy async database manager, the DDL
builder for the collection/product/granule layout, the SQL dialect helper
and the repositories issuing raw SQL against the dynamic tables.
"""
