"""Constants package for fellis.eu."""

from .privacy import (
    ERASABLE_POST_SOURCES,
    AuditAction,
    ConsentPurpose,
    Provenance,
    consent_purposes,
)

__all__ = [
    "AuditAction",
    "ConsentPurpose",
    "Provenance",
    "ERASABLE_POST_SOURCES",
    "consent_purposes",
]
