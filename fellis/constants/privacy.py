"""
Privacy Constants for fellis.eu

Consent purposes, provenance tags and audit action names used by the
consent ledger, the Facebook import pipeline and the erasure engine.
"""

from enum import Enum


class ConsentPurpose(str, Enum):
    """Closed set of purposes a user can grant or withdraw consent for."""

    EXTERNAL_IMPORT = "external_import"
    GENERAL_PROCESSING = "general_processing"


class Provenance(str, Enum):
    """Source tags stored on rows materialized from an external network."""

    FRIEND = "external"
    POST = "external_post"
    PHOTO = "external_photo"


# Tags accepted by source-scoped erasure of posts
ERASABLE_POST_SOURCES = (Provenance.POST.value, Provenance.PHOTO.value)


class AuditAction(str, Enum):
    """Action tags written to the audit log."""

    CONSENT_GRANTED = "consent_granted"
    CONSENT_WITHDRAWN = "consent_withdrawn"
    FACEBOOK_CONNECTED = "facebook_connected"
    FACEBOOK_IMPORT_COMPLETED = "facebook_import_completed"
    FACEBOOK_IMPORT_FAILED = "facebook_import_failed"
    FACEBOOK_IMPORT_ABORTED = "facebook_import_aborted"
    SOURCE_DATA_ERASED = "source_data_erased"
    ACCOUNT_DELETION_STARTED = "account_deletion_started"
    ACCOUNT_DELETED = "account_deleted"
    TOKEN_EXPIRED = "facebook_token_expired"
    DATA_EXPORTED = "data_exported"


def consent_purposes() -> list[str]:
    """Return the recognized consent purposes as plain strings."""
    return [purpose.value for purpose in ConsentPurpose]
