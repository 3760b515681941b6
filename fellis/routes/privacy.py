"""
Privacy & GDPR Compliance Routes

Provides endpoints for:
- Consent management (status, grant, withdraw)
- Erasure of imported Facebook data
- Account deletion (right to be forgotten)
- Data export (right to data portability)
"""

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from fellis.auth import client_ip, get_current_user
from fellis.constants import ERASABLE_POST_SOURCES, AuditAction, ConsentPurpose
from fellis.database import get_db
from fellis.dependencies import get_audit_log, get_import_runner, get_media_store, get_token_vault
from fellis.exceptions import ValidationError
from fellis.models.user import User
from fellis.schemas.privacy import (
    AccountDeletionRequest,
    ConsentGrantRequest,
    ConsentGrantResponse,
    ConsentStatusResponse,
    ConsentWithdrawResponse,
    SourceErasureRequest,
    SourceErasureResponse,
)
from fellis.services import consent_service, erasure_service
from fellis.services.export_service import generate_user_export
from fellis.services.import_runner import ImportTaskRunner
from fellis.services.media_store import LocalMediaStore
from fellis.services.token_vault import TokenVault
from fellis.utils.audit_log import AuditLog
from fellis.utils.clock import utcnow

router = APIRouter(tags=["Privacy & GDPR"])

logger = logging.getLogger(__name__)


@router.get("/consent", response_model=ConsentStatusResponse)
async def get_consent(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ConsentStatusResponse:
    """Current consent state for every purpose."""
    status = await consent_service.get_consent_status(current_user.id, db)
    return ConsentStatusResponse(user_id=current_user.id, consents=status)


@router.post("/consent", response_model=ConsentGrantResponse)
async def grant_consent(
    data: ConsentGrantRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    audit: AuditLog = Depends(get_audit_log),
    vault: TokenVault = Depends(get_token_vault),
    runner: ImportTaskRunner = Depends(get_import_runner),
) -> ConsentGrantResponse:
    """
    Grant consent for a purpose.

    Granting external_import starts one background Facebook import when a
    token is stored. The response does not wait for it.
    """
    record = await consent_service.grant_consent(
        current_user.id,
        data.purpose,
        client_ip(request),
        request.headers.get("user-agent"),
        db,
        audit,
    )

    import_started = False
    if record.purpose == ConsentPurpose.EXTERNAL_IMPORT.value:
        import_started = runner.submit(current_user.id, vault.decrypt(current_user.fb_access_token))

    return ConsentGrantResponse(purpose=record.purpose, import_started=import_started)


@router.delete("/consent/{purpose}", response_model=ConsentWithdrawResponse)
async def withdraw_consent(
    purpose: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    audit: AuditLog = Depends(get_audit_log),
    media_store: LocalMediaStore = Depends(get_media_store),
    runner: ImportTaskRunner = Depends(get_import_runner),
) -> ConsentWithdrawResponse:
    """
    Withdraw consent for a purpose.

    Withdrawing external_import stops a running import and erases everything
    imported from Facebook.
    """
    purpose = consent_service.validate_purpose(purpose)
    ip = client_ip(request)

    if purpose == ConsentPurpose.EXTERNAL_IMPORT.value:
        await runner.cancel(current_user.id)
        was_granted = await consent_service.has_active_consent(current_user.id, purpose, db)
        result = await erasure_service.erase_source_data(
            current_user.id, list(ERASABLE_POST_SOURCES), db, media_store, audit, ip
        )
        return ConsentWithdrawResponse(
            purpose=purpose, withdrawn=was_granted, posts_deleted=result["posts_deleted"]
        )

    withdrawn = await consent_service.withdraw_consent(current_user.id, purpose, ip, db, audit)
    return ConsentWithdrawResponse(purpose=purpose, withdrawn=withdrawn)


@router.post("/erase-source", response_model=SourceErasureResponse)
async def erase_source_data(
    data: SourceErasureRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    audit: AuditLog = Depends(get_audit_log),
    media_store: LocalMediaStore = Depends(get_media_store),
    runner: ImportTaskRunner = Depends(get_import_runner),
) -> SourceErasureResponse:
    """Delete imported posts and photos, imported friendships and the stored Facebook token."""
    sources = erasure_service.validate_sources(data.sources)
    await runner.cancel(current_user.id)
    result = await erasure_service.erase_source_data(
        current_user.id, sources, db, media_store, audit, client_ip(request)
    )
    return SourceErasureResponse(posts_deleted=result["posts_deleted"])


@router.post("/delete-account")
async def delete_account(
    data: AccountDeletionRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    audit: AuditLog = Depends(get_audit_log),
    media_store: LocalMediaStore = Depends(get_media_store),
    runner: ImportTaskRunner = Depends(get_import_runner),
) -> dict[str, str]:
    """
    Delete the account and all associated data (GDPR Article 17).

    This action is IRREVERSIBLE.
    """
    if not data.confirm:
        raise ValidationError("You must confirm account deletion", field="confirm")

    await runner.cancel(current_user.id)
    await erasure_service.erase_account(
        current_user.id, db, media_store, audit, client_ip(request), reason=data.reason
    )
    return {
        "status": "success",
        "message": "Your account and all associated data have been permanently deleted",
    }


@router.get("/export")
async def export_data(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    audit: AuditLog = Depends(get_audit_log),
) -> Response:
    """Download a JSON export of all personal data (GDPR Article 20)."""
    export = await generate_user_export(db, current_user)
    await audit.record(current_user.id, AuditAction.DATA_EXPORTED, None, client_ip(request))

    filename = f"fellis_export_{current_user.id}_{utcnow().strftime('%Y%m%d')}.json"
    return Response(
        content=json.dumps(export, indent=2, default=str),
        media_type="application/json",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
