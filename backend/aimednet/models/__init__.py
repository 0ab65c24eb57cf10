from aimednet.models.connection import Connection
from aimednet.models.conversation import Conversation, DirectMessage
from aimednet.models.notification import Notification
from aimednet.models.user import User

__all__ = [
    "User",
    "Conversation",
    "DirectMessage",
    "Notification",
    "Connection",
]
