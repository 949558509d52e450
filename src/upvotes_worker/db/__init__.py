"""Database module."""

from .base import Base, get_engine, get_session_factory, init_db
from .models import CommentOrder, UpvoteOrder, model_for_table

__all__ = [
    "Base",
    "get_engine",
    "get_session_factory",
    "init_db",
    "UpvoteOrder",
    "CommentOrder",
    "model_for_table",
]
