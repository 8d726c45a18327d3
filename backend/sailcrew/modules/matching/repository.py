# modules/matching/repository.py
"""
Accès DB du matching proactif.

insert_match()      : INSERT ... ON CONFLICT (crew_id, leg_id) DO NOTHING
consume_ai_budget() : upsert atomique du compteur journalier, refusé au-delà
                      de la limite (une seule instruction, commit immédiat
                      pour ne pas bloquer les autres workers sur la ligne)
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import selectinload
from typing import List, Optional, Set, Tuple
from datetime import date, datetime

from sailcrew.shared.models import (
    CrewLegMatch, AIUsageBudget, CrewProfile, Leg, Voyage, Registration,
)
from sailcrew.shared.enums import MatchStatus, RegistrationStatus, VoyageState


class MatchingRepository:

    # ── Entrées du batch ──────────────────────────────────────

    async def get_open_legs(self, db: AsyncSession, as_of: datetime) -> List[Tuple[Leg, int]]:
        """Legs publiés, pas encore partis, avec des places libres → [(leg, owner_id)]."""
        approved = (
            select(Registration.leg_id, func.count(Registration.id).label("n"))
            .where(Registration.status == RegistrationStatus.APPROVED)
            .group_by(Registration.leg_id)
            .subquery()
        )
        r = await db.execute(
            select(Leg, Voyage.owner_id)
            .join(Voyage, Voyage.id == Leg.voyage_id)
            .outerjoin(approved, approved.c.leg_id == Leg.id)
            .where(
                Voyage.state == VoyageState.PUBLISHED,
                Leg.start_date > as_of,
                func.coalesce(approved.c.n, 0) < Leg.crew_needed,
            )
            .order_by(Leg.start_date, Leg.id)
        )
        return [(leg, owner_id) for leg, owner_id in r.all()]

    async def get_consenting_profiles(self, db: AsyncSession) -> List[CrewProfile]:
        r = await db.execute(
            select(CrewProfile)
            .where(CrewProfile.matching_consent.is_(True))
            .order_by(CrewProfile.user_id)
        )
        return r.scalars().all()

    async def get_excluded_user_ids(self, db: AsyncSession, leg_id: int) -> Set[int]:
        """Déjà inscrits (tout statut) ou déjà proposés pour ce leg (dont déclinés)."""
        registered = await db.execute(select(Registration.user_id).where(Registration.leg_id == leg_id))
        matched = await db.execute(select(CrewLegMatch.crew_id).where(CrewLegMatch.leg_id == leg_id))
        return set(registered.scalars().all()) | set(matched.scalars().all())

    # ── Budget IA ─────────────────────────────────────────────

    async def consume_ai_budget(self, db: AsyncSession, day: date, limit: int) -> bool:
        """
        Une unité = un raffinement (un appel AIScoringClient.score), pas une
        requête HTTP : les tentatives de fallback fournisseur ne sont pas comptées.
        """
        stmt = pg_insert(AIUsageBudget).values(day=day, calls=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[AIUsageBudget.day],
            set_={"calls": AIUsageBudget.calls + 1},
            where=AIUsageBudget.calls < limit,
        ).returning(AIUsageBudget.calls)
        calls = await db.scalar(stmt)
        await db.commit()
        return calls is not None and calls <= limit

    # ── Matches ───────────────────────────────────────────────

    async def insert_match(self, db: AsyncSession, **values) -> Optional[int]:
        stmt = (
            pg_insert(CrewLegMatch)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["crew_id", "leg_id"])
            .returning(CrewLegMatch.id)
        )
        return await db.scalar(stmt)

    async def get_match(self, db: AsyncSession, match_id: int) -> Optional[CrewLegMatch]:
        r = await db.execute(
            select(CrewLegMatch)
            .options(selectinload(CrewLegMatch.leg).selectinload(Leg.voyage))
            .where(CrewLegMatch.id == match_id)
        )
        return r.scalar_one_or_none()

    async def get_matches_for_crew(self, db: AsyncSession, user_id: int) -> List[CrewLegMatch]:
        r = await db.execute(
            select(CrewLegMatch)
            .where(CrewLegMatch.crew_id == user_id)
            .order_by(CrewLegMatch.match_score.desc())
        )
        return r.scalars().all()

    async def get_matches_for_leg(self, db: AsyncSession, leg_id: int) -> List[CrewLegMatch]:
        r = await db.execute(
            select(CrewLegMatch)
            .where(CrewLegMatch.leg_id == leg_id)
            .order_by(CrewLegMatch.match_score.desc())
        )
        return r.scalars().all()

    async def set_response(self, db: AsyncSession, match_id: int, side: str, response: MatchStatus) -> None:
        column = "crew_status" if side == "crew" else "owner_status"
        await db.execute(
            update(CrewLegMatch)
            .where(CrewLegMatch.id == match_id, CrewLegMatch.registration_id.is_(None))
            .values({column: response})
            .execution_options(synchronize_session=False)
        )

    async def attach_registration(self, db: AsyncSession, match_id: int, registration_id: int) -> None:
        await db.execute(
            update(CrewLegMatch)
            .where(CrewLegMatch.id == match_id, CrewLegMatch.registration_id.is_(None))
            .values(registration_id=registration_id)
            .execution_options(synchronize_session=False)
        )
