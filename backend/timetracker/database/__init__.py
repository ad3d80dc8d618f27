"""
Persistence layer: SQLAlchemy models, sessions and workflow queries.
"""
