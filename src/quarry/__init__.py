"""
Quarry: typed records in, typed rows out.

A persistence layer over SQLAlchemy Core that wraps every insert with an
ordered set of lifecycle hooks and exposes query results as immutable,
case-insensitive rows.
"""

__version__ = "0.1.0"
