# modules/matching/service.py
"""
ProactiveMatchingJob + réponses aux matches.

Batch (runMatchingBatch) :
    1. Legs publiés avec places libres, profils ayant consenti au matching
    2. Par leg, en parallèle (pool borné MATCHING_WORKERS, une session par leg) :
         pré-filtre déterministe → composite vectorisé sur tous les éligibles
         → meilleurs MATCHING_MAX_CANDIDATES_PER_LEG conservés → top MATCHING_MAX_AI_REFINE raffinés par IA
         → score ≥ MATCHING_MIN_SCORE persisté (ON CONFLICT DO NOTHING)
    3. Budget IA journalier global, compté en raffinements (un appel score()
       par candidat, quel que soit le nombre de tentatives fournisseur) :
       épuisé → score composite conservé
    4. Un leg en échec est loggé et ignoré ; les matches des autres legs
       sont tout de même notifiés

    match_score = score IA × 10 si raffiné, sinon composite.

Réponses :
    crew_status / owner_status indépendants. L'acceptation mutuelle crée
    exactement UNE inscription (source=match) puis planifie son évaluation.
"""
import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

import structlog
from fastapi import BackgroundTasks
from sqlalchemy.ext.asyncio import AsyncSession

from sailcrew.core.config import settings
from sailcrew.core.database import AsyncSessionLocal
from sailcrew.engine.ai import prompts
from sailcrew.engine.ai.client import AIScoringClient
from sailcrew.engine.matching.composite import (
    CandidateSnapshot, LegSnapshot, shortlist,
)
from sailcrew.infra.notifications import dispatcher
from sailcrew.modules.matching.repository import MatchingRepository
from sailcrew.modules.registration.repository import RegistrationRepository
from sailcrew.modules.registration.service import run_assessment_task
from sailcrew.modules.voyage.repository import VoyageRepository
from sailcrew.shared.enums import MatchStatus, NotificationKind, RiskLevel
from sailcrew.shared.errors import InvalidTransition, ProviderUnavailable
from sailcrew.shared.models import CrewLegMatch, User

logger = structlog.get_logger(__name__)

repo              = MatchingRepository()
registration_repo = RegistrationRepository()
voyage_repo       = VoyageRepository()


@dataclass
class LegReport:
    leg_id:           int
    considered:       int = 0
    ai_calls:         int = 0
    created:          List[Tuple[int, int]] = field(default_factory=list)   # [(crew_id, match_id)]
    budget_exhausted: bool = False


@dataclass
class BatchReport:
    batch_id:              str
    as_of:                 datetime
    legs_processed:        int
    candidates_considered: int
    ai_calls:              int
    matches_created:       int
    budget_exhausted:      bool
    legs_failed:           int = 0


class MatchingService:

    # ── Batch ─────────────────────────────────────────────────────────────────

    async def run_batch(
        self,
        as_of: Optional[datetime] = None,
        *,
        session_factory=AsyncSessionLocal,
        ai=None,
    ) -> BatchReport:
        as_of = as_of or datetime.now(timezone.utc)
        batch_id = uuid.uuid4().hex
        ai = ai or AIScoringClient()
        log = logger.bind(batch_id=batch_id)

        async with session_factory() as db:
            legs = await repo.get_open_legs(db, as_of)
            profiles = await repo.get_consenting_profiles(db)
        candidates = [CandidateSnapshot.from_profile(p) for p in profiles]
        log.info("matching.batch_started", legs=len(legs), candidates=len(candidates))

        semaphore = asyncio.Semaphore(max(settings.MATCHING_WORKERS, 1))

        async def worker(leg: LegSnapshot) -> Optional[LegReport]:
            async with semaphore:
                try:
                    return await self._process_leg(leg, candidates, batch_id, as_of, session_factory, ai)
                except Exception:
                    log.exception("matching.leg_failed", leg_id=leg.id)
                    return None

        outcomes = await asyncio.gather(
            *(worker(_leg_snapshot(leg, owner_id)) for leg, owner_id in legs)
        )
        reports: Sequence[LegReport] = [r for r in outcomes if r is not None]

        for report in reports:
            for crew_id, match_id in report.created:
                await dispatcher.notify(
                    crew_id, NotificationKind.MATCH_SUGGESTED,
                    {"match_id": match_id, "leg_id": report.leg_id, "batch_id": batch_id},
                )

        result = BatchReport(
            batch_id=batch_id,
            as_of=as_of,
            legs_processed=len(reports),
            candidates_considered=sum(r.considered for r in reports),
            ai_calls=sum(r.ai_calls for r in reports),
            matches_created=sum(len(r.created) for r in reports),
            budget_exhausted=any(r.budget_exhausted for r in reports),
            legs_failed=len(outcomes) - len(reports),
        )
        log.info(
            "matching.batch_done",
            legs=result.legs_processed,
            matches=result.matches_created,
            ai_calls=result.ai_calls,
            budget_exhausted=result.budget_exhausted,
            legs_failed=result.legs_failed,
        )
        return result

    async def _process_leg(
        self,
        leg: LegSnapshot,
        candidates: Sequence[CandidateSnapshot],
        batch_id: str,
        as_of: datetime,
        session_factory,
        ai,
    ) -> LegReport:
        report = LegReport(leg_id=leg.id)
        async with session_factory() as db:
            excluded = await repo.get_excluded_user_ids(db, leg.id)
            shortlisted = shortlist(leg, candidates, excluded, limit=settings.MATCHING_MAX_CANDIDATES_PER_LEG)
            report.considered = len(shortlisted)

            for position, ranked in enumerate(shortlisted):
                score, rationale = ranked.composite, None

                refine = position < settings.MATCHING_MAX_AI_REFINE and ranked.candidate.ai_processing_consent
                if refine and not report.budget_exhausted:
                    if await repo.consume_ai_budget(db, as_of.date(), settings.MATCHING_DAILY_AI_BUDGET):
                        report.ai_calls += 1
                        refined = await self._refine(ai, leg, ranked.candidate)
                        if refined is not None:
                            score, rationale = refined
                    else:
                        report.budget_exhausted = True
                        logger.info("matching.budget_exhausted", leg_id=leg.id, batch_id=batch_id)

                if score < settings.MATCHING_MIN_SCORE:
                    continue

                match_id = await repo.insert_match(
                    db,
                    crew_id=ranked.candidate.user_id,
                    leg_id=leg.id,
                    match_score=round(score, 2),
                    composite_score=ranked.composite,
                    ai_rationale=rationale,
                    crew_status=MatchStatus.PENDING,
                    owner_status=MatchStatus.PENDING,
                    expires_at=leg.start_date,
                    batch_id=batch_id,
                )
                if match_id is not None:
                    report.created.append((ranked.candidate.user_id, match_id))
            await db.commit()

        logger.info(
            "matching.leg_done", leg_id=leg.id, considered=report.considered,
            created=len(report.created), ai_calls=report.ai_calls,
        )
        return report

    async def _refine(self, ai, leg: LegSnapshot, candidate: CandidateSnapshot) -> Optional[Tuple[float, str]]:
        rubric, text = prompts.match_refine_prompt(leg.to_prompt(), candidate.to_prompt())
        try:
            result = await ai.score(rubric, text, consent_asserted=candidate.ai_processing_consent)
        except ProviderUnavailable:
            logger.warning("matching.refine_unavailable", leg_id=leg.id, crew_id=candidate.user_id)
            return None
        return result.score * 10, result.rationale

    # ── Lecture ───────────────────────────────────────────────────────────────

    async def list_for_crew(self, db: AsyncSession, user: User) -> List[CrewLegMatch]:
        return await repo.get_matches_for_crew(db, user.id)

    async def list_for_leg(self, db: AsyncSession, leg_id: int, owner: User) -> List[CrewLegMatch]:
        leg = await voyage_repo.get_leg(db, leg_id)
        if not leg:
            raise LookupError("Leg introuvable.")
        voyage = await voyage_repo.get_voyage(db, leg.voyage_id)
        if voyage.owner_id != owner.id:
            raise PermissionError("Accès refusé.")
        return await repo.get_matches_for_leg(db, leg_id)

    # ── Réponses ──────────────────────────────────────────────────────────────

    async def respond(
        self,
        db: AsyncSession,
        match_id: int,
        response: MatchStatus,
        user: User,
        background_tasks: BackgroundTasks,
    ) -> CrewLegMatch:
        match = await repo.get_match(db, match_id)
        if not match:
            raise LookupError("Match introuvable.")

        if user.id == match.crew_id:
            side = "crew"
        elif user.id == match.leg.voyage.owner_id:
            side = "owner"
        else:
            raise PermissionError("Accès refusé.")

        current = match.crew_status if side == "crew" else match.owner_status
        if match.registration_id is not None:
            # Inscription déjà créée : rejouer "accepted" est sans effet
            if response == MatchStatus.ACCEPTED and current == MatchStatus.ACCEPTED:
                return match
            raise InvalidTransition("MATCH_ALREADY_CONVERTED")
        if _aware(match.expires_at) <= datetime.now(timezone.utc):
            raise InvalidTransition("MATCH_EXPIRED")

        await repo.set_response(db, match.id, side, response)
        await db.commit()
        await db.refresh(match)
        logger.info("matching.responded", match_id=match.id, side=side, response=response.value)

        if match.is_mutual_accept and match.registration_id is None:
            await self._convert(db, match, background_tasks)
        return match

    async def _convert(self, db: AsyncSession, match: CrewLegMatch, background_tasks: BackgroundTasks) -> None:
        """Acceptation mutuelle → exactement une inscription."""
        requirements = await voyage_repo.get_requirements(db, match.leg.voyage_id)
        registration_id = await registration_repo.insert_if_absent(
            db, match.leg_id, match.crew_id, [r.id for r in requirements],
        )
        created = registration_id is not None
        if not created:
            existing = await registration_repo.get_for_leg_and_user(db, match.leg_id, match.crew_id)
            registration_id = existing.id if existing else None

        if registration_id is not None:
            await repo.attach_registration(db, match.id, registration_id)
        await db.commit()
        await db.refresh(match)

        if created:
            logger.info("matching.registration_created", match_id=match.id, registration_id=registration_id)
            background_tasks.add_task(run_assessment_task, registration_id, None)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _leg_snapshot(leg, owner_id: int) -> LegSnapshot:
    return LegSnapshot(
        id=leg.id,
        voyage_id=leg.voyage_id,
        owner_id=owner_id,
        name=leg.name,
        start_date=leg.start_date,
        end_date=leg.end_date,
        risk_level=RiskLevel(leg.risk_level) if leg.risk_level else None,
        min_experience_level=leg.min_experience_level,
        skills=tuple(leg.skills or ()),
        latitude=leg.start_latitude,
        longitude=leg.start_longitude,
    )


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
