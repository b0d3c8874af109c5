"""
Cascade Connect - Core Package
===============================

Core business logic, models, schemas and integration clients.
"""

from cascade_connect.core.config import settings
from cascade_connect.core.database import Base, get_db, get_db_session

__all__ = ["Base", "get_db", "get_db_session", "settings"]
