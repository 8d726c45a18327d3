# tests/modules/documents/test_router.py
"""
Tests HTTP pour modules.documents.router

Couverture :
    POST /documents/{id}/grants      → 201 + GrantOut
    POST /documents/{id}/grants      grant actif existant → 409, validation → 400, non-owner → 403
    POST /documents/{id}/grants      max_views = 0 → 422
    GET  /documents/{id}/grants      → 200 liste
    POST /grants/{id}/revoke         → 200, introuvable → 404
    GET  /documents/{id}/access-log  → 200 lecture seule
"""
import pytest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

from tests.conftest import make_grant

pytestmark = pytest.mark.router

SERVICE = "sailcrew.modules.documents.router.service"


def _grant_json(**kwargs):
    body = {
        "grantee_id": 2,
        "purpose": "identity_verification",
        "expires_at": (datetime.now(timezone.utc) + timedelta(days=7)).isoformat(),
        "max_views": 3,
    }
    body.update(kwargs)
    return body


@pytest.mark.asyncio
async def test_create_grant_201(crew_client, mocker):
    mocker.patch(f"{SERVICE}.create_grant", AsyncMock(return_value=make_grant()))
    resp = await crew_client.post("/documents/7/grants", json=_grant_json())
    assert resp.status_code == 201
    body = resp.json()
    assert body["purpose"] == "identity_verification"
    assert body["grantee_id"] == 2


@pytest.mark.asyncio
async def test_create_grant_actif_existant_409(crew_client, mocker):
    mocker.patch(f"{SERVICE}.create_grant", AsyncMock(side_effect=ValueError("ACTIVE_GRANT_EXISTS")))
    resp = await crew_client.post("/documents/7/grants", json=_grant_json())
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_create_grant_validation_400(crew_client, mocker):
    mocker.patch(f"{SERVICE}.create_grant", AsyncMock(side_effect=ValueError("EXPIRES_AT_IN_PAST")))
    resp = await crew_client.post("/documents/7/grants", json=_grant_json())
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_create_grant_non_owner_403(owner_client, mocker):
    mocker.patch(f"{SERVICE}.create_grant", AsyncMock(side_effect=PermissionError()))
    resp = await owner_client.post("/documents/7/grants", json=_grant_json())
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_create_grant_max_views_zero_422(crew_client):
    resp = await crew_client.post("/documents/7/grants", json=_grant_json(max_views=0))
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_list_grants_200(crew_client, mocker):
    mocker.patch(f"{SERVICE}.list_grants", AsyncMock(return_value=[make_grant(), make_grant(id=71)]))
    resp = await crew_client.get("/documents/7/grants")
    assert resp.status_code == 200
    assert [g["id"] for g in resp.json()] == [70, 71]


@pytest.mark.asyncio
async def test_revoke_200(crew_client, mocker):
    mocker.patch(f"{SERVICE}.revoke_grant", AsyncMock(return_value=make_grant(is_revoked=True)))
    resp = await crew_client.post("/grants/70/revoke")
    assert resp.status_code == 200
    assert resp.json()["is_revoked"] is True


@pytest.mark.asyncio
async def test_revoke_introuvable_404(crew_client, mocker):
    mocker.patch(f"{SERVICE}.revoke_grant", AsyncMock(side_effect=LookupError()))
    resp = await crew_client.post("/grants/70/revoke")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_access_log_200(crew_client, mocker):
    entry = SimpleNamespace(
        id=1, document_id=7, accessed_by=2, access_type="grant_check",
        access_granted=False, denial_reason="expired", details={"purpose": "identity_verification"},
        created_at=datetime(2026, 6, 1, tzinfo=timezone.utc),
    )
    mocker.patch(f"{SERVICE}.get_access_log", AsyncMock(return_value=[entry]))
    resp = await crew_client.get("/documents/7/access-log")
    assert resp.status_code == 200
    assert resp.json()[0]["denial_reason"] == "expired"
