"""
Forensic Ledger Engine - Persistence Collaborators
"""

from forensic_engine.repositories.base import ForensicRepository
from forensic_engine.repositories.memory import InMemoryForensicRepository
from forensic_engine.repositories.sqlalchemy_repository import SqlAlchemyForensicRepository

__all__ = [
    "ForensicRepository",
    "InMemoryForensicRepository",
    "SqlAlchemyForensicRepository",
]
