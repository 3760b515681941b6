"""
Facebook OAuth routes.

Login starts with a redirect to the Facebook dialog carrying a single-use
state. The callback links the profile, stores the encrypted token and opens
a session. An import is started only when the user already holds current
external_import consent; otherwise the SPA asks for consent first and the
grant starts the import.
"""

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from fellis.auth import client_ip, create_session
from fellis.config import settings
from fellis.constants import AuditAction, ConsentPurpose
from fellis.database import get_db
from fellis.dependencies import (
    get_audit_log,
    get_graph_client,
    get_import_runner,
    get_oauth_state_store,
    get_token_vault,
)
from fellis.exceptions import ExternalServiceError, ServiceUnavailableError
from fellis.services import consent_service
from fellis.services.auth_service import link_facebook_account
from fellis.services.graph_client import GraphClient
from fellis.services.import_runner import ImportTaskRunner
from fellis.services.token_vault import TokenVault
from fellis.utils.audit_log import AuditLog
from fellis.utils.oauth_state import OAuthStateStore

router = APIRouter(tags=["Facebook"])

logger = logging.getLogger(__name__)


def _frontend_redirect(**params: str) -> RedirectResponse:
    return RedirectResponse(f"/?{urlencode(params)}", status_code=302)


@router.get("/facebook")
async def facebook_login(
    lang: str = "da",
    graph: GraphClient = Depends(get_graph_client),
    states: OAuthStateStore = Depends(get_oauth_state_store),
) -> RedirectResponse:
    if not graph.configured:
        raise ServiceUnavailableError("Facebook integration not configured", service="facebook")
    state = states.issue(lang[:5])
    return RedirectResponse(graph.authorization_url(state), status_code=302)


@router.get("/facebook/callback")
async def facebook_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    db: AsyncSession = Depends(get_db),
    graph: GraphClient = Depends(get_graph_client),
    states: OAuthStateStore = Depends(get_oauth_state_store),
    vault: TokenVault = Depends(get_token_vault),
    runner: ImportTaskRunner = Depends(get_import_runner),
    audit: AuditLog = Depends(get_audit_log),
) -> RedirectResponse:
    lang = states.consume(state)
    if lang is None:
        logger.warning("Facebook callback with unknown or expired state")
        return _frontend_redirect(fb_error="state")
    if not code:
        return _frontend_redirect(fb_error="denied")

    try:
        exchange = await graph.exchange_code(code)
        profile = await graph.fetch_profile(exchange["access_token"])
    except ExternalServiceError as e:
        logger.error(f"Facebook callback failed: {e.message}")
        return _frontend_redirect(fb_error="token")

    user = await link_facebook_account(
        profile,
        exchange["access_token"],
        exchange["expires_in"],
        settings.fb_token_ttl_days,
        vault,
        db,
    )
    await audit.record(user.id, AuditAction.FACEBOOK_CONNECTED, None, client_ip(request))

    import_started = False
    if await consent_service.has_active_consent(user.id, ConsentPurpose.EXTERNAL_IMPORT.value, db):
        import_started = runner.submit(user.id, exchange["access_token"])

    session_id = await create_session(user.id, lang, db)
    return _frontend_redirect(
        fb_session=session_id,
        fb_lang=lang,
        fb_import="started" if import_started else "pending_consent",
    )
