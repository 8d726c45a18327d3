# modules/voyage/service.py
"""
Gestion des exigences d'un voyage (owner uniquement).

Immutabilité : dès qu'une inscription d'un leg du voyage a été évaluée,
les exigences sont figées (ajout / suppression refusés). Une modification
après ce point exigerait une ré-évaluation, hors de ce service.
"""
from typing import List

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from sailcrew.engine.assessment.requirements import from_row
from sailcrew.modules.voyage.repository import VoyageRepository
from sailcrew.shared.enums import RequirementKind
from sailcrew.shared.errors import InvalidRequirementConfig, InvalidTransition
from sailcrew.shared.models import User, Voyage, VoyageRequirement

logger = structlog.get_logger(__name__)

repo = VoyageRepository()


class VoyageService:

    async def list_requirements(self, db: AsyncSession, voyage_id: int) -> List[VoyageRequirement]:
        voyage = await repo.get_voyage(db, voyage_id)
        if not voyage:
            raise LookupError("Voyage introuvable.")
        return await repo.get_requirements(db, voyage_id)

    async def add_requirement(self, db: AsyncSession, voyage_id: int, payload, owner: User) -> VoyageRequirement:
        voyage = await self._owned_voyage(db, voyage_id, owner)
        await self._ensure_mutable(db, voyage)

        requirement = VoyageRequirement(voyage_id=voyage.id, **payload.model_dump())
        try:
            from_row(requirement)
        except InvalidRequirementConfig as e:
            raise ValueError(e.reason)

        if payload.kind in (RequirementKind.SKILL, RequirementKind.QUESTION) and not payload.qualification_criteria:
            logger.warning("voyage.requirement_without_rubric", voyage_id=voyage.id, kind=payload.kind.value)

        created = await repo.create_requirement(db, requirement)
        logger.info("voyage.requirement_added", voyage_id=voyage.id, requirement_id=created.id)
        return created

    async def delete_requirement(self, db: AsyncSession, voyage_id: int, requirement_id: int, owner: User) -> None:
        voyage = await self._owned_voyage(db, voyage_id, owner)
        requirement = await repo.get_requirement(db, voyage.id, requirement_id)
        if not requirement:
            raise LookupError("Exigence introuvable.")
        await self._ensure_mutable(db, voyage)
        await repo.delete_requirement(db, requirement)
        logger.info("voyage.requirement_deleted", voyage_id=voyage.id, requirement_id=requirement_id)

    async def update_auto_approval(self, db: AsyncSession, voyage_id: int, payload, owner: User) -> Voyage:
        voyage = await self._owned_voyage(db, voyage_id, owner)
        return await repo.update_voyage(
            db, voyage,
            auto_approval_enabled=payload.auto_approval_enabled,
            passing_score=payload.passing_score,
        )

    # ── Helpers ───────────────────────────────────────────────────────────────

    async def _owned_voyage(self, db: AsyncSession, voyage_id: int, owner: User) -> Voyage:
        voyage = await repo.get_voyage(db, voyage_id)
        if not voyage:
            raise LookupError("Voyage introuvable.")
        if voyage.owner_id != owner.id:
            raise PermissionError("Accès refusé.")
        return voyage

    async def _ensure_mutable(self, db: AsyncSession, voyage: Voyage) -> None:
        if await repo.has_assessed_registration(db, voyage.id):
            raise InvalidTransition("REQUIREMENTS_LOCKED")
