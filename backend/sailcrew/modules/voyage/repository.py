# modules/voyage/repository.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, exists
from typing import List, Optional

from sailcrew.shared.models import Voyage, Leg, VoyageRequirement, Registration


class VoyageRepository:

    async def get_voyage(self, db: AsyncSession, voyage_id: int) -> Optional[Voyage]:
        r = await db.execute(select(Voyage).where(Voyage.id == voyage_id))
        return r.scalar_one_or_none()

    async def get_leg(self, db: AsyncSession, leg_id: int) -> Optional[Leg]:
        r = await db.execute(select(Leg).where(Leg.id == leg_id))
        return r.scalar_one_or_none()

    # ── Exigences ─────────────────────────────────────────────

    async def get_requirements(self, db: AsyncSession, voyage_id: int) -> List[VoyageRequirement]:
        r = await db.execute(
            select(VoyageRequirement)
            .where(VoyageRequirement.voyage_id == voyage_id)
            .order_by(VoyageRequirement.order, VoyageRequirement.id)
        )
        return r.scalars().all()

    async def get_requirement(
        self, db: AsyncSession, voyage_id: int, requirement_id: int
    ) -> Optional[VoyageRequirement]:
        r = await db.execute(
            select(VoyageRequirement).where(
                VoyageRequirement.id == requirement_id,
                VoyageRequirement.voyage_id == voyage_id,
            )
        )
        return r.scalar_one_or_none()

    async def create_requirement(self, db: AsyncSession, requirement: VoyageRequirement) -> VoyageRequirement:
        db.add(requirement)
        await db.commit()
        await db.refresh(requirement)
        return requirement

    async def delete_requirement(self, db: AsyncSession, requirement: VoyageRequirement) -> None:
        await db.delete(requirement)
        await db.commit()

    async def has_assessed_registration(self, db: AsyncSession, voyage_id: int) -> bool:
        """Une inscription du voyage a-t-elle déjà été évaluée (ou est en cours) ?"""
        q = select(
            exists().where(
                Registration.leg_id == Leg.id,
                Leg.voyage_id == voyage_id,
                Registration.assessment_started_at.is_not(None),
            )
        )
        return bool(await db.scalar(q))

    # ── Paramètres d'auto-approbation ─────────────────────────

    async def update_voyage(self, db: AsyncSession, voyage: Voyage, **fields) -> Voyage:
        for field, value in fields.items():
            if value is not None and hasattr(voyage, field):
                setattr(voyage, field, value)
        await db.commit()
        await db.refresh(voyage)
        return voyage
