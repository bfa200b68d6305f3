"""Import all models so Base.metadata knows every table."""
from match_chat.infrastructure.db.models.message import MessageModel

__all__ = [
    "MessageModel",
]
