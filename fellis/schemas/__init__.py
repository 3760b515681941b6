from .privacy import (
    AccountDeletionRequest,
    ConsentGrantRequest,
    ConsentGrantResponse,
    ConsentStatusResponse,
    ConsentWithdrawResponse,
    ImportSummary,
    PurposeStatus,
    SourceErasureRequest,
    SourceErasureResponse,
)
from .user import SessionInfo, SessionResponse, UserCreate, UserLogin, UserResponse
from .social import (
    CommentCreate,
    CommentResponse,
    FeedResponse,
    FriendResponse,
    LikeResponse,
    MessageCreate,
    MessageResponse,
    PostCreate,
    PostResponse,
    ProfileResponse,
    ThreadResponse,
)

# Define the public API of this module
__all__ = [
    "AccountDeletionRequest",
    "ConsentGrantRequest",
    "ConsentGrantResponse",
    "ConsentStatusResponse",
    "ConsentWithdrawResponse",
    "ImportSummary",
    "PurposeStatus",
    "SourceErasureRequest",
    "SourceErasureResponse",
    "CommentCreate",
    "CommentResponse",
    "FeedResponse",
    "FriendResponse",
    "LikeResponse",
    "MessageCreate",
    "MessageResponse",
    "PostCreate",
    "PostResponse",
    "ProfileResponse",
    "ThreadResponse",
    "SessionInfo",
    "SessionResponse",
    "UserCreate",
    "UserLogin",
    "UserResponse",
]
