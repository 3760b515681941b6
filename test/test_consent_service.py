"""
Tests for the consent ledger

Grant, withdraw and status queries against a real (SQLite) database.
"""

import pytest
from sqlalchemy import select

from fellis.constants import AuditAction, ConsentPurpose
from fellis.exceptions import ErrorCode, InvalidConsentPurposeError
from fellis.models.consent_record import ConsentRecord
from fellis.services import consent_service

EXTERNAL = ConsentPurpose.EXTERNAL_IMPORT.value
GENERAL = ConsentPurpose.GENERAL_PROCESSING.value


async def _records(session_factory, user_id):
    async with session_factory() as session:
        result = await session.execute(
            select(ConsentRecord).where(ConsentRecord.user_id == user_id).order_by(ConsentRecord.id)
        )
        return list(result.scalars().all())


class TestValidatePurpose:
    def test_known_purposes(self):
        assert consent_service.validate_purpose(EXTERNAL) == EXTERNAL
        assert consent_service.validate_purpose(ConsentPurpose.GENERAL_PROCESSING) == GENERAL

    def test_unknown_purpose(self):
        with pytest.raises(InvalidConsentPurposeError) as exc_info:
            consent_service.validate_purpose("marketing")
        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == ErrorCode.VALIDATION_INVALID_CONSENT_PURPOSE
        assert EXTERNAL in exc_info.value.details["allowed_purposes"]


class TestGrantConsent:
    async def test_grant_records_row_and_audit(self, test_db, test_user, audit, audit_entries, session_factory):
        record = await consent_service.grant_consent(
            test_user.id, EXTERNAL, "10.0.0.1", "Mozilla/5.0", test_db, audit
        )

        assert record.granted is True
        assert record.withdrawn_at is None
        assert record.ip_address == "10.0.0.1"
        assert record.user_agent == "Mozilla/5.0"
        assert await consent_service.has_active_consent(test_user.id, EXTERNAL, test_db) is True

        entries = await audit_entries(AuditAction.CONSENT_GRANTED)
        assert [e.details for e in entries] == [{"purpose": EXTERNAL}]

    async def test_unknown_purpose_writes_nothing(self, test_db, test_user, audit, audit_entries, session_factory):
        with pytest.raises(InvalidConsentPurposeError):
            await consent_service.grant_consent(test_user.id, "marketing", None, None, test_db, audit)

        assert await _records(session_factory, test_user.id) == []
        assert await audit_entries() == []

    async def test_repeat_grant_appends_history(self, test_db, test_user, audit, session_factory):
        await consent_service.grant_consent(test_user.id, EXTERNAL, None, None, test_db, audit)
        await consent_service.grant_consent(test_user.id, EXTERNAL, None, None, test_db, audit)

        records = await _records(session_factory, test_user.id)
        assert len(records) == 2
        assert all(r.granted for r in records)

    async def test_long_user_agent_is_truncated(self, test_db, test_user, audit):
        record = await consent_service.grant_consent(test_user.id, GENERAL, None, "x" * 2000, test_db, audit)
        assert len(record.user_agent) == 512


class TestWithdrawConsent:
    async def test_withdraw_after_grant(self, test_db, test_user, audit, audit_entries, session_factory):
        await consent_service.grant_consent(test_user.id, EXTERNAL, None, None, test_db, audit)

        assert await consent_service.withdraw_consent(test_user.id, EXTERNAL, "10.0.0.2", test_db, audit) is True
        assert await consent_service.has_active_consent(test_user.id, EXTERNAL, test_db) is False

        grant, withdrawal = await _records(session_factory, test_user.id)
        assert grant.granted is True
        assert grant.withdrawn_at is not None
        assert withdrawal.granted is False
        assert withdrawal.withdrawn_at is not None
        assert withdrawal.ip_address == "10.0.0.2"

        assert len(await audit_entries(AuditAction.CONSENT_WITHDRAWN)) == 1

    async def test_withdraw_without_grant_is_noop(self, test_db, test_user, audit, audit_entries, session_factory):
        assert await consent_service.withdraw_consent(test_user.id, EXTERNAL, None, test_db, audit) is False
        assert await _records(session_factory, test_user.id) == []
        assert await audit_entries() == []

    async def test_second_withdraw_is_noop(self, test_db, test_user, audit, session_factory):
        await consent_service.grant_consent(test_user.id, EXTERNAL, None, None, test_db, audit)
        await consent_service.withdraw_consent(test_user.id, EXTERNAL, None, test_db, audit)

        assert await consent_service.withdraw_consent(test_user.id, EXTERNAL, None, test_db, audit) is False
        assert len(await _records(session_factory, test_user.id)) == 2

    async def test_regrant_after_withdraw(self, test_db, test_user, audit):
        await consent_service.grant_consent(test_user.id, EXTERNAL, None, None, test_db, audit)
        await consent_service.withdraw_consent(test_user.id, EXTERNAL, None, test_db, audit)
        await consent_service.grant_consent(test_user.id, EXTERNAL, None, None, test_db, audit)

        assert await consent_service.has_active_consent(test_user.id, EXTERNAL, test_db) is True

    async def test_purposes_are_independent(self, test_db, test_user, audit):
        await consent_service.grant_consent(test_user.id, EXTERNAL, None, None, test_db, audit)
        await consent_service.grant_consent(test_user.id, GENERAL, None, None, test_db, audit)
        await consent_service.withdraw_consent(test_user.id, GENERAL, None, test_db, audit)

        assert await consent_service.has_active_consent(test_user.id, EXTERNAL, test_db) is True
        assert await consent_service.has_active_consent(test_user.id, GENERAL, test_db) is False


class TestConsentStatus:
    async def test_status_lists_every_purpose(self, test_db, test_user):
        status = await consent_service.get_consent_status(test_user.id, test_db)
        assert set(status) == {EXTERNAL, GENERAL}
        assert status[EXTERNAL] == {"granted": False, "granted_at": None, "withdrawn_at": None}

    async def test_status_reflects_latest_record(self, test_db, test_user, audit):
        await consent_service.grant_consent(test_user.id, EXTERNAL, None, None, test_db, audit)
        await consent_service.grant_consent(test_user.id, GENERAL, None, None, test_db, audit)
        await consent_service.withdraw_consent(test_user.id, GENERAL, None, test_db, audit)

        status = await consent_service.get_consent_status(test_user.id, test_db)
        assert status[EXTERNAL]["granted"] is True
        assert status[EXTERNAL]["granted_at"] is not None
        assert status[GENERAL]["granted"] is False
        assert status[GENERAL]["withdrawn_at"] is not None

    async def test_other_users_do_not_leak(self, test_db, test_user, make_user, audit):
        other = await make_user()
        await consent_service.grant_consent(other.id, EXTERNAL, None, None, test_db, audit)

        assert await consent_service.has_active_consent(test_user.id, EXTERNAL, test_db) is False

    async def test_history_newest_first(self, test_db, test_user, audit):
        await consent_service.grant_consent(test_user.id, EXTERNAL, None, None, test_db, audit)
        await consent_service.withdraw_consent(test_user.id, EXTERNAL, None, test_db, audit)
        await consent_service.grant_consent(test_user.id, GENERAL, None, None, test_db, audit)

        history = await consent_service.get_consent_history(test_user.id, test_db, purpose=EXTERNAL)
        assert [r.granted for r in history] == [False, True]
        assert len(await consent_service.get_consent_history(test_user.id, test_db)) == 3
