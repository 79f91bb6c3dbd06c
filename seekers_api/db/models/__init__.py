# Models package (re-export feature modules for stable imports)
from .users.user import User
from .auth.pending_signup import PendingSignup
from .chat.chat_request import ChatRequest
from .chat.conversation import Conversation
from .chat.message import Message

__all__ = [
    "User",
    "PendingSignup",
    "ChatRequest",
    "Conversation",
    "Message",
]
