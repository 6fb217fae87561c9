"""
CodeShift - Core Package
========================

Models, schemas, storage and the execution pipeline.
"""

from src.core.config import settings
from src.core.database import Base, get_db, get_db_session

__all__ = ["Base", "get_db", "get_db_session", "settings"]
