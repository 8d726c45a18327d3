# modules/registration/repository.py
"""
Accès DB pour les inscriptions.

Single-writer :
    claim_assessment() pose assessment_started_at par un UPDATE conditionnel.
    Une seule exécution du pipeline peut obtenir la ligne ; les suivantes
    reçoivent False.

save_outcome() n'écrit les champs terminaux que si l'inscription est
encore PENDING_APPROVAL et pas encore évaluée (un humain a pu trancher
pendant l'évaluation).
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from typing import Dict, Iterable, List, Optional
from datetime import datetime

from sailcrew.shared.models import (
    Registration, RegistrationAnswer, AssessmentRun, Leg, CrewProfile,
)
from sailcrew.shared.enums import RegistrationStatus, RegistrationSource


class RegistrationRepository:

    # ── Lecture ───────────────────────────────────────────────

    async def get_registration(self, db: AsyncSession, registration_id: int) -> Optional[Registration]:
        r = await db.execute(
            select(Registration)
            .options(selectinload(Registration.leg).selectinload(Leg.voyage))
            .where(Registration.id == registration_id)
        )
        return r.scalar_one_or_none()

    async def get_for_leg_and_user(self, db: AsyncSession, leg_id: int, user_id: int) -> Optional[Registration]:
        r = await db.execute(
            select(Registration).where(Registration.leg_id == leg_id, Registration.user_id == user_id)
        )
        return r.scalar_one_or_none()

    async def get_answers(self, db: AsyncSession, registration_id: int) -> List[RegistrationAnswer]:
        r = await db.execute(
            select(RegistrationAnswer).where(RegistrationAnswer.registration_id == registration_id)
        )
        return r.scalars().all()

    async def get_profile(self, db: AsyncSession, user_id: int) -> Optional[CrewProfile]:
        r = await db.execute(select(CrewProfile).where(CrewProfile.user_id == user_id))
        return r.scalar_one_or_none()

    # ── Création ──────────────────────────────────────────────

    async def create_registration(
        self,
        db: AsyncSession,
        leg_id: int,
        user_id: int,
        answers: Iterable[Dict],
        source: RegistrationSource = RegistrationSource.CREW,
    ) -> Optional[Registration]:
        """Inscription + une ligne réponse par exigence. None si (leg, user) existe déjà."""
        registration = Registration(
            leg_id=leg_id,
            user_id=user_id,
            status=RegistrationStatus.PENDING_APPROVAL,
            source=source,
            auto_approved=False,
        )
        try:
            db.add(registration)
            await db.flush()
            for a in answers:
                db.add(RegistrationAnswer(registration_id=registration.id, **a))
            await db.commit()
            await db.refresh(registration)
            return registration
        except IntegrityError:
            await db.rollback()
            return None

    async def insert_if_absent(
        self, db: AsyncSession, leg_id: int, user_id: int, requirement_ids: Iterable[int]
    ) -> Optional[int]:
        """
        Inscription née d'un match mutuel : INSERT ... ON CONFLICT DO NOTHING.
        Retourne l'id créé, ou None si l'inscription existait déjà. Pas de commit.
        """
        stmt = (
            pg_insert(Registration)
            .values(
                leg_id=leg_id,
                user_id=user_id,
                status=RegistrationStatus.PENDING_APPROVAL,
                source=RegistrationSource.MATCH,
                auto_approved=False,
            )
            .on_conflict_do_nothing(index_elements=["leg_id", "user_id"])
            .returning(Registration.id)
        )
        registration_id = await db.scalar(stmt)
        if registration_id is None:
            return None
        for requirement_id in requirement_ids:
            db.add(RegistrationAnswer(registration_id=registration_id, requirement_id=requirement_id))
        await db.flush()
        return registration_id

    # ── Évaluation ────────────────────────────────────────────

    async def claim_assessment(self, db: AsyncSession, registration_id: int, now: datetime) -> bool:
        r = await db.execute(
            update(Registration)
            .where(
                Registration.id == registration_id,
                Registration.assessment_started_at.is_(None),
                Registration.status == RegistrationStatus.PENDING_APPROVAL,
            )
            .values(assessment_started_at=now)
            .returning(Registration.id)
            .execution_options(synchronize_session=False)
        )
        claimed = r.scalar_one_or_none() is not None
        await db.commit()
        return claimed

    async def save_outcome(
        self,
        db: AsyncSession,
        registration_id: int,
        *,
        outcome,
        started_at: datetime,
        finished_at: datetime,
    ) -> bool:
        r = await db.execute(
            update(Registration)
            .where(
                Registration.id == registration_id,
                Registration.assessed_at.is_(None),
                Registration.status == RegistrationStatus.PENDING_APPROVAL,
            )
            .values(
                status=outcome.status,
                auto_approved=outcome.auto_approved,
                aggregate_score=outcome.aggregate_score,
                reasoning=outcome.reasoning,
                stopped_at=outcome.stopped_at,
                assessed_at=finished_at,
            )
            .returning(Registration.id)
            .execution_options(synchronize_session=False)
        )
        written = r.scalar_one_or_none() is not None

        if written:
            for a in outcome.answer_scores:
                await db.execute(
                    update(RegistrationAnswer)
                    .where(
                        RegistrationAnswer.registration_id == registration_id,
                        RegistrationAnswer.requirement_id == a.requirement_id,
                    )
                    .values(score=a.score, reasoning=a.reasoning, passed=a.passed)
                    .execution_options(synchronize_session=False)
                )

        db.add(AssessmentRun(
            registration_id=registration_id,
            started_at=started_at,
            finished_at=finished_at,
            outcome=outcome.status,
            stopped_at=outcome.stopped_at,
            ai_calls=outcome.ai_calls,
            trace=[t.to_dict() for t in outcome.trace],
        ))
        await db.commit()
        return written

    # ── Transitions humaines ──────────────────────────────────

    async def transition(
        self,
        db: AsyncSession,
        registration_id: int,
        from_statuses: Iterable[RegistrationStatus],
        to_status: RegistrationStatus,
        **fields,
    ) -> bool:
        """UPDATE gardé par le statut courant : pas de résurrection possible."""
        r = await db.execute(
            update(Registration)
            .where(Registration.id == registration_id, Registration.status.in_(list(from_statuses)))
            .values(status=to_status, **fields)
            .returning(Registration.id)
            .execution_options(synchronize_session=False)
        )
        changed = r.scalar_one_or_none() is not None
        await db.commit()
        return changed
