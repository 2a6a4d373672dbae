"""Database module for local SQLite storage."""

from .models import Client, WorkSession
from .schemas import ClientCreate, ClientResponse, Session
from .sqlite import Database, get_db, reset_db

__all__ = [
    "Client",
    "WorkSession",
    "ClientCreate",
    "ClientResponse",
    "Session",
    "Database",
    "get_db",
    "reset_db",
]
