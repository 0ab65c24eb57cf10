from aimednet.client.counters import CountsSnapshot, SocialCounters
from aimednet.client.keyring import KeySession
from aimednet.client.messaging import ConversationService, DecryptedMessage, Inbox
from aimednet.client.optimistic import optimistic_update
from aimednet.client.password_reset import PasswordResetFlow, ResetState

__all__ = [
    "ConversationService",
    "CountsSnapshot",
    "DecryptedMessage",
    "Inbox",
    "KeySession",
    "PasswordResetFlow",
    "ResetState",
    "SocialCounters",
    "optimistic_update",
]
