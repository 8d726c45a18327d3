# tests/modules/matching/test_router.py
"""
Tests HTTP pour modules.matching.router

Couverture :
    POST /matching/batches              admin → 200 + rapport, non-admin → 401/403
    GET  /matching/me                   → 200 liste
    GET  /matching/legs/{leg_id}        non-owner → 403
    POST /matching/{id}/respond         → 200, "pending" → 422, expiré → 409
"""
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock

from sailcrew.modules.matching.service import BatchReport
from sailcrew.shared.enums import MatchStatus
from sailcrew.shared.errors import InvalidTransition
from tests.conftest import make_match

pytestmark = pytest.mark.router

SERVICE = "sailcrew.modules.matching.router.service"


@pytest.mark.asyncio
async def test_run_batch_admin_200(admin_client, mocker):
    report = BatchReport(
        batch_id="b1", as_of=datetime(2027, 1, 15, tzinfo=timezone.utc), legs_processed=2,
        candidates_considered=10, ai_calls=4, matches_created=3, budget_exhausted=False,
    )
    run = mocker.patch(f"{SERVICE}.run_batch", AsyncMock(return_value=report))
    resp = await admin_client.post("/matching/batches", json={"as_of": "2027-01-15T00:00:00Z"})
    assert resp.status_code == 200
    assert resp.json()["matches_created"] == 3
    run.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_batch_non_admin(client):
    resp = await client.post("/matching/batches", json={})
    assert resp.status_code in (401, 403)


@pytest.mark.asyncio
async def test_my_matches_200(crew_client, mocker):
    mocker.patch(f"{SERVICE}.list_for_crew", AsyncMock(return_value=[make_match()]))
    resp = await crew_client.get("/matching/me")
    assert resp.status_code == 200
    assert resp.json()[0]["match_score"] == 82.0


@pytest.mark.asyncio
async def test_leg_matches_non_owner_403(crew_client, mocker):
    mocker.patch(f"{SERVICE}.list_for_leg", AsyncMock(side_effect=PermissionError()))
    resp = await crew_client.get("/matching/legs/100")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_respond_200(crew_client, mocker):
    mocker.patch(
        f"{SERVICE}.respond",
        AsyncMock(return_value=make_match(crew_status=MatchStatus.ACCEPTED)),
    )
    resp = await crew_client.post("/matching/900/respond", json={"response": "accepted"})
    assert resp.status_code == 200
    assert resp.json()["crew_status"] == "accepted"


@pytest.mark.asyncio
async def test_respond_pending_422(crew_client):
    resp = await crew_client.post("/matching/900/respond", json={"response": "pending"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_respond_expire_409(crew_client, mocker):
    mocker.patch(f"{SERVICE}.respond", AsyncMock(side_effect=InvalidTransition("MATCH_EXPIRED")))
    resp = await crew_client.post("/matching/900/respond", json={"response": "declined"})
    assert resp.status_code == 409
