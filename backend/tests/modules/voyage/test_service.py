# tests/modules/voyage/test_service.py
"""
Tests unitaires pour modules.voyage.service.VoyageService

Couverture :
    add_requirement      → succès, non-owner, gate incomplète → ValueError,
                           exigences figées après évaluation → REQUIREMENTS_LOCKED
    delete_requirement   → introuvable, figée
    update_auto_approval → délégué au repo
"""
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock

from sailcrew.modules.voyage.service import VoyageService
from sailcrew.shared.enums import RequirementKind
from sailcrew.shared.errors import InvalidTransition
from tests.conftest import make_async_db, make_owner, make_requirement, make_voyage

pytestmark = pytest.mark.service

service = VoyageService()

REPO = "sailcrew.modules.voyage.service.repo"


def _requirement_payload(**kwargs):
    defaults = {
        "kind": RequirementKind.SKILL,
        "order": 0,
        "is_required": True,
        "required_risk_level": None,
        "min_experience_level": None,
        "skill_name": "navigation",
        "question_text": None,
        "qualification_criteria": "Night passages.",
        "weight": 5,
        "requires_photo_validation": False,
        "pass_confidence_score": 7,
    }
    defaults.update(kwargs)
    ns = SimpleNamespace(**defaults)
    ns.model_dump = lambda: dict(defaults)
    return ns


class TestAddRequirement:
    @pytest.mark.asyncio
    async def test_succes(self, mocker):
        mocker.patch(f"{REPO}.get_voyage", AsyncMock(return_value=make_voyage()))
        mocker.patch(f"{REPO}.has_assessed_registration", AsyncMock(return_value=False))
        create = mocker.patch(f"{REPO}.create_requirement", AsyncMock(return_value=make_requirement(id=5)))

        created = await service.add_requirement(make_async_db(), 10, _requirement_payload(), make_owner())

        assert created.id == 5
        stored = create.await_args.args[1]
        assert stored.voyage_id == 10
        assert stored.skill_name == "navigation"

    @pytest.mark.asyncio
    async def test_non_owner(self, mocker):
        mocker.patch(f"{REPO}.get_voyage", AsyncMock(return_value=make_voyage(owner_id=2)))
        with pytest.raises(PermissionError):
            await service.add_requirement(make_async_db(), 10, _requirement_payload(), make_owner(id=3))

    @pytest.mark.asyncio
    async def test_gate_incomplete(self, mocker):
        mocker.patch(f"{REPO}.get_voyage", AsyncMock(return_value=make_voyage()))
        mocker.patch(f"{REPO}.has_assessed_registration", AsyncMock(return_value=False))
        create = mocker.patch(f"{REPO}.create_requirement", AsyncMock())
        payload = _requirement_payload(kind=RequirementKind.RISK_LEVEL, skill_name=None)

        with pytest.raises(ValueError):
            await service.add_requirement(make_async_db(), 10, payload, make_owner())
        create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exigences_figees(self, mocker):
        mocker.patch(f"{REPO}.get_voyage", AsyncMock(return_value=make_voyage()))
        mocker.patch(f"{REPO}.has_assessed_registration", AsyncMock(return_value=True))
        create = mocker.patch(f"{REPO}.create_requirement", AsyncMock())

        with pytest.raises(InvalidTransition, match="REQUIREMENTS_LOCKED"):
            await service.add_requirement(make_async_db(), 10, _requirement_payload(), make_owner())
        create.assert_not_awaited()


class TestDeleteRequirement:
    @pytest.mark.asyncio
    async def test_introuvable(self, mocker):
        mocker.patch(f"{REPO}.get_voyage", AsyncMock(return_value=make_voyage()))
        mocker.patch(f"{REPO}.get_requirement", AsyncMock(return_value=None))
        with pytest.raises(LookupError):
            await service.delete_requirement(make_async_db(), 10, 1, make_owner())

    @pytest.mark.asyncio
    async def test_figee(self, mocker):
        mocker.patch(f"{REPO}.get_voyage", AsyncMock(return_value=make_voyage()))
        mocker.patch(f"{REPO}.get_requirement", AsyncMock(return_value=make_requirement()))
        mocker.patch(f"{REPO}.has_assessed_registration", AsyncMock(return_value=True))
        delete = mocker.patch(f"{REPO}.delete_requirement", AsyncMock())
        with pytest.raises(InvalidTransition):
            await service.delete_requirement(make_async_db(), 10, 1, make_owner())
        delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_succes(self, mocker):
        mocker.patch(f"{REPO}.get_voyage", AsyncMock(return_value=make_voyage()))
        mocker.patch(f"{REPO}.get_requirement", AsyncMock(return_value=make_requirement()))
        mocker.patch(f"{REPO}.has_assessed_registration", AsyncMock(return_value=False))
        delete = mocker.patch(f"{REPO}.delete_requirement", AsyncMock())
        await service.delete_requirement(make_async_db(), 10, 1, make_owner())
        delete.assert_awaited_once()


@pytest.mark.asyncio
async def test_update_auto_approval(mocker):
    voyage = make_voyage()
    mocker.patch(f"{REPO}.get_voyage", AsyncMock(return_value=voyage))
    update = mocker.patch(f"{REPO}.update_voyage", AsyncMock(return_value=voyage))

    payload = SimpleNamespace(auto_approval_enabled=True, passing_score=7.5)
    await service.update_auto_approval(make_async_db(), 10, payload, make_owner())

    assert update.await_args.kwargs == {"auto_approval_enabled": True, "passing_score": 7.5}
