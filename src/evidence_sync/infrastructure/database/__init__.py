"""Database layer"""

from .client import DatabaseClient
from .models import Base, TABLES

__all__ = ["DatabaseClient", "Base", "TABLES"]
