# tests/modules/documents/test_service.py
"""
Tests unitaires pour modules.documents.service.DocumentService

Couverture :
    create_grant   → propriétaire uniquement, self-grant / passé / > 30 j refusés,
                     doublon actif → ACTIVE_GRANT_EXISTS, journal GRANT_CREATE
    revoke_grant   → grantor uniquement, idempotent
    validate_grant → grant consommé : journal accordé
                     aucun grant : GrantMissing + journal refusé
                     grant expiré (1 s) : GrantExpired + journal refusé
                     aucune création implicite de grant
    fetch_document → grant d'un autre document refusé, lecture + journal VIEW
"""
import pytest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

from sailcrew.modules.documents.service import DocumentService
from sailcrew.shared.enums import AccessType, GrantPurpose
from sailcrew.shared.errors import GrantExpired, GrantMissing
from tests.conftest import make_async_db, make_document, make_grant, make_owner, make_user

pytestmark = pytest.mark.service

service = DocumentService()

REPO = "sailcrew.modules.documents.service.repo"


def _grant_payload(**kwargs):
    defaults = {
        "grantee_id": 2,
        "purpose": GrantPurpose.IDENTITY_VERIFICATION,
        "expires_at": datetime.now(timezone.utc) + timedelta(days=7),
        "max_views": 3,
        "purpose_reference_id": 10,
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


# ── create_grant ──────────────────────────────────────────────────────────────

class TestCreateGrant:
    @pytest.mark.asyncio
    async def test_succes_journalise(self, mocker):
        mocker.patch(f"{REPO}.get_document", AsyncMock(return_value=make_document()))
        create = mocker.patch(f"{REPO}.create_grant", AsyncMock(return_value=make_grant()))
        log = mocker.patch(f"{REPO}.log_access", AsyncMock())
        db = make_async_db()

        grant = await service.create_grant(db, 7, _grant_payload(), make_user(id=1))

        assert grant.id == 70
        assert create.await_args.kwargs["grantor_id"] == 1
        assert log.await_args.kwargs["access_type"] == AccessType.GRANT_CREATE
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_non_proprietaire_refuse(self, mocker):
        mocker.patch(f"{REPO}.get_document", AsyncMock(return_value=make_document(owner_id=1)))
        create = mocker.patch(f"{REPO}.create_grant", AsyncMock())
        with pytest.raises(PermissionError):
            await service.create_grant(make_async_db(), 7, _grant_payload(), make_owner(id=2))
        create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_document_introuvable(self, mocker):
        mocker.patch(f"{REPO}.get_document", AsyncMock(return_value=None))
        with pytest.raises(LookupError):
            await service.create_grant(make_async_db(), 7, _grant_payload(), make_user())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides,error", [
        ({"grantee_id": 1}, "SELF_GRANT_NOT_ALLOWED"),
        ({"expires_at": datetime.now(timezone.utc) - timedelta(minutes=1)}, "EXPIRES_AT_IN_PAST"),
        ({"expires_at": datetime.now(timezone.utc) + timedelta(days=45)}, "GRANT_LONGER_THAN_30_DAYS"),
    ])
    async def test_validations(self, mocker, overrides, error):
        mocker.patch(f"{REPO}.get_document", AsyncMock(return_value=make_document()))
        create = mocker.patch(f"{REPO}.create_grant", AsyncMock())
        with pytest.raises(ValueError, match=error):
            await service.create_grant(make_async_db(), 7, _grant_payload(**overrides), make_user(id=1))
        create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_doublon_actif(self, mocker):
        mocker.patch(f"{REPO}.get_document", AsyncMock(return_value=make_document()))
        mocker.patch(f"{REPO}.create_grant", AsyncMock(return_value=None))
        with pytest.raises(ValueError, match="ACTIVE_GRANT_EXISTS"):
            await service.create_grant(make_async_db(), 7, _grant_payload(), make_user(id=1))


# ── revoke_grant ──────────────────────────────────────────────────────────────

class TestRevokeGrant:
    @pytest.mark.asyncio
    async def test_grantor_revoque(self, mocker):
        grant = make_grant()
        mocker.patch(f"{REPO}.get_grant", AsyncMock(return_value=grant))
        revoke = mocker.patch(f"{REPO}.revoke_grant", AsyncMock(return_value=grant))
        log = mocker.patch(f"{REPO}.log_access", AsyncMock())

        await service.revoke_grant(make_async_db(), 70, make_user(id=1))

        revoke.assert_awaited_once()
        assert log.await_args.kwargs["access_type"] == AccessType.GRANT_REVOKE

    @pytest.mark.asyncio
    async def test_grantee_ne_peut_pas_revoquer(self, mocker):
        mocker.patch(f"{REPO}.get_grant", AsyncMock(return_value=make_grant()))
        with pytest.raises(PermissionError):
            await service.revoke_grant(make_async_db(), 70, make_owner(id=2))

    @pytest.mark.asyncio
    async def test_deja_revoque_sans_effet(self, mocker):
        mocker.patch(f"{REPO}.get_grant", AsyncMock(return_value=make_grant(is_revoked=True)))
        revoke = mocker.patch(f"{REPO}.revoke_grant", AsyncMock())
        await service.revoke_grant(make_async_db(), 70, make_user(id=1))
        revoke.assert_not_awaited()


# ── validate_grant ────────────────────────────────────────────────────────────

class TestValidateGrant:
    NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_grant_valide_consomme(self, mocker):
        grant = make_grant(view_count=1)
        mocker.patch(f"{REPO}.get_document", AsyncMock(return_value=make_document()))
        consume = mocker.patch(f"{REPO}.consume_grant", AsyncMock(return_value=grant))
        log = mocker.patch(f"{REPO}.log_access", AsyncMock())

        result = await service.validate_grant(
            make_async_db(), 7, 2, GrantPurpose.IDENTITY_VERIFICATION, now=self.NOW,
        )

        assert result is grant
        consume.assert_awaited_once()
        assert log.await_args.kwargs["access_granted"] is True
        assert log.await_args.kwargs["access_type"] == AccessType.GRANT_CHECK

    @pytest.mark.asyncio
    async def test_aucun_grant(self, mocker):
        mocker.patch(f"{REPO}.get_document", AsyncMock(return_value=make_document()))
        mocker.patch(f"{REPO}.consume_grant", AsyncMock(return_value=None))
        mocker.patch(f"{REPO}.get_latest_grant", AsyncMock(return_value=None))
        create = mocker.patch(f"{REPO}.create_grant", AsyncMock())
        log = mocker.patch(f"{REPO}.log_access", AsyncMock())

        with pytest.raises(GrantMissing):
            await service.validate_grant(make_async_db(), 7, 2, GrantPurpose.IDENTITY_VERIFICATION, now=self.NOW)

        create.assert_not_awaited()
        assert log.await_args.kwargs["access_granted"] is False
        assert log.await_args.kwargs["denial_reason"] == "no_grant"

    @pytest.mark.asyncio
    async def test_grant_expire_depuis_une_seconde(self, mocker):
        expired = make_grant(expires_at=self.NOW - timedelta(seconds=1))
        mocker.patch(f"{REPO}.get_document", AsyncMock(return_value=make_document()))
        mocker.patch(f"{REPO}.consume_grant", AsyncMock(return_value=None))
        mocker.patch(f"{REPO}.get_latest_grant", AsyncMock(return_value=expired))
        log = mocker.patch(f"{REPO}.log_access", AsyncMock())

        with pytest.raises(GrantExpired):
            await service.validate_grant(make_async_db(), 7, 2, GrantPurpose.IDENTITY_VERIFICATION, now=self.NOW)

        assert log.await_args.kwargs["denial_reason"] == "expired"

    @pytest.mark.asyncio
    async def test_document_inexistant(self, mocker):
        mocker.patch(f"{REPO}.get_document", AsyncMock(return_value=None))
        consume = mocker.patch(f"{REPO}.consume_grant", AsyncMock())
        log = mocker.patch(f"{REPO}.log_access", AsyncMock())

        with pytest.raises(GrantMissing):
            await service.validate_grant(make_async_db(), 99, 2, GrantPurpose.IDENTITY_VERIFICATION, now=self.NOW)

        consume.assert_not_awaited()
        assert log.await_args.kwargs["denial_reason"] == "no_document"


# ── fetch_document ────────────────────────────────────────────────────────────

class TestFetchDocument:
    @pytest.mark.asyncio
    async def test_lecture_et_journal(self, mocker):
        mocker.patch(f"{REPO}.get_document", AsyncMock(return_value=make_document()))
        log = mocker.patch(f"{REPO}.log_access", AsyncMock())
        mocker.patch("sailcrew.modules.documents.service.storage.read_document", return_value=b"jpeg")

        content, mime = await service.fetch_document(make_async_db(), 7, make_grant())

        assert content == b"jpeg"
        assert mime == "image/jpeg"
        assert log.await_args.kwargs["access_type"] == AccessType.VIEW

    @pytest.mark.asyncio
    async def test_grant_d_un_autre_document(self, mocker):
        read = mocker.patch("sailcrew.modules.documents.service.storage.read_document")
        with pytest.raises(GrantMissing):
            await service.fetch_document(make_async_db(), 8, make_grant(document_id=7))
        read.assert_not_called()
