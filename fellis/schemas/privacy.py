from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from fellis.constants import ERASABLE_POST_SOURCES


class ImportSummary(BaseModel):
    """Per-category counts produced by one Facebook import run."""

    friends_imported: int = 0
    posts_imported: int = 0
    photos_imported: int = 0


class PurposeStatus(BaseModel):
    granted: bool
    granted_at: Optional[datetime] = None
    withdrawn_at: Optional[datetime] = None


class ConsentStatusResponse(BaseModel):
    user_id: int
    consents: dict[str, PurposeStatus]


class ConsentGrantRequest(BaseModel):
    purpose: str = Field(..., description="One of: external_import, general_processing")


class ConsentGrantResponse(BaseModel):
    purpose: str
    granted: bool = True
    import_started: bool = False


class ConsentWithdrawResponse(BaseModel):
    purpose: str
    withdrawn: bool
    posts_deleted: int = 0


class SourceErasureRequest(BaseModel):
    sources: list[str] = Field(default_factory=lambda: list(ERASABLE_POST_SOURCES))


class SourceErasureResponse(BaseModel):
    posts_deleted: int


class AccountDeletionRequest(BaseModel):
    confirm: bool
    reason: Optional[str] = Field(None, max_length=500)
