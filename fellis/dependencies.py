"""
Process-wide collaborators, exposed as FastAPI dependencies.

Each getter builds its object once. Tests replace them through
app.dependency_overrides.
"""

from functools import lru_cache

from fellis import database
from fellis.config import settings
from fellis.services.graph_client import GraphClient
from fellis.services.import_runner import ImportTaskRunner
from fellis.services.import_service import FacebookImportPipeline
from fellis.services.media_store import LocalMediaStore
from fellis.services.token_vault import TokenVault
from fellis.utils.audit_log import AuditLog
from fellis.utils.oauth_state import OAuthStateStore


def get_session_factory():
    return database.AsyncSessionLocal


@lru_cache
def get_audit_log() -> AuditLog:
    return AuditLog(get_session_factory())


@lru_cache
def get_token_vault() -> TokenVault:
    return TokenVault(settings.token_encryption_key)


@lru_cache
def get_media_store() -> LocalMediaStore:
    return LocalMediaStore(settings.upload_dir, settings.upload_url_prefix)


@lru_cache
def get_graph_client() -> GraphClient:
    return GraphClient(
        app_id=settings.fb_app_id,
        app_secret=settings.fb_app_secret,
        redirect_uri=settings.fb_redirect_uri,
        graph_url=settings.fb_graph_url,
        dialog_url=settings.fb_dialog_url,
        scopes=settings.fb_scopes,
        timeout=settings.fb_http_timeout_seconds,
    )


@lru_cache
def get_import_runner() -> ImportTaskRunner:
    pipeline = FacebookImportPipeline(
        session_factory=get_session_factory(),
        graph=get_graph_client(),
        media_store=get_media_store(),
        audit=get_audit_log(),
    )
    return ImportTaskRunner(pipeline, get_audit_log())


@lru_cache
def get_oauth_state_store() -> OAuthStateStore:
    return OAuthStateStore(ttl_seconds=settings.oauth_state_ttl_seconds)
