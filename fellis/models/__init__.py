from .audit_log import AuditEntry
from .consent_record import ConsentRecord
from .friendship import Friendship
from .message import Message
from .post import Comment, Post, PostLike
from .user import User
from .user_session import UserSession

__all__ = [
    "AuditEntry",
    "Comment",
    "ConsentRecord",
    "Friendship",
    "Message",
    "Post",
    "PostLike",
    "User",
    "UserSession",
]
