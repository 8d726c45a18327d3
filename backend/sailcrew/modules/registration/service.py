# modules/registration/service.py
"""
Service d'inscription : soumission, évaluation asynchrone, décisions humaines.

Flux :
    1. submit()            → inscription + réponses écrites, 201 immédiat
    2. BackgroundTasks     → run_assessment_task(registration_id, photo)
    3. assess()            → claim single-writer, snapshot, pipeline pur,
                             écriture des champs terminaux, notifications
    4. review() / cancel() → seules transitions hors pipeline
                             (NotApproved n'existe QUE via review())
"""
import base64
import binascii
from datetime import datetime, timezone
from typing import Dict, Optional

import structlog
from fastapi import BackgroundTasks
from sqlalchemy.ext.asyncio import AsyncSession

from sailcrew.core.database import AsyncSessionLocal
from sailcrew.engine.ai.client import AIScoringClient
from sailcrew.engine.assessment.pipeline import (
    AnswerSnapshot, AssessmentInput, AssessmentOutcome, AssessmentPorts,
    ProfileSnapshot, RegistrationAssessmentPipeline, internal_error_outcome,
)
from sailcrew.infra.notifications import dispatcher
from sailcrew.modules.documents.service import DocumentService
from sailcrew.modules.registration.repository import RegistrationRepository
from sailcrew.modules.voyage.repository import VoyageRepository
from sailcrew.shared.enums import (
    NotificationKind, RegistrationSource, RegistrationStatus, VoyageState,
)
from sailcrew.shared.errors import AssessmentAlreadyRun, ConsentViolation, InvalidTransition
from sailcrew.shared.models import CrewProfile, Registration, User

logger = structlog.get_logger(__name__)

repo        = RegistrationRepository()
voyage_repo = VoyageRepository()
documents   = DocumentService()

TERMINAL_STATUSES = {RegistrationStatus.CANCELLED, RegistrationStatus.NOT_APPROVED}


class RegistrationService:

    # ── Soumission ────────────────────────────────────────────────────────────

    async def submit(
        self,
        db: AsyncSession,
        payload,
        crew: CrewProfile,
        background_tasks: BackgroundTasks,
    ) -> Registration:
        leg = await voyage_repo.get_leg(db, payload.leg_id)
        if not leg:
            raise LookupError("Leg introuvable.")
        voyage = await voyage_repo.get_voyage(db, leg.voyage_id)
        if not voyage or voyage.state != VoyageState.PUBLISHED:
            raise ValueError("VOYAGE_NOT_OPEN")
        if voyage.owner_id == crew.user_id:
            raise ValueError("OWNER_CANNOT_REGISTER")

        existing = await repo.get_for_leg_and_user(db, leg.id, crew.user_id)
        if existing:
            if existing.status in TERMINAL_STATUSES:
                raise InvalidTransition("REGISTRATION_CLOSED")
            raise AssessmentAlreadyRun("ALREADY_REGISTERED")

        facial_photo = _decode_photo(payload.facial_photo)

        requirements = await voyage_repo.get_requirements(db, voyage.id)
        known_ids = {r.id for r in requirements}
        given = {a.requirement_id: a for a in payload.answers}
        unknown = sorted(set(given) - known_ids)
        if unknown:
            raise ValueError(f"UNKNOWN_REQUIREMENTS {unknown}")

        answers = [
            {
                "requirement_id": rid,
                "answer_text": given[rid].answer_text if rid in given else None,
                "passport_document_id": given[rid].passport_document_id if rid in given else None,
            }
            for rid in sorted(known_ids)
        ]
        registration = await repo.create_registration(db, leg.id, crew.user_id, answers)
        if registration is None:
            raise AssessmentAlreadyRun("ALREADY_REGISTERED")

        logger.info("registration.submitted", registration_id=registration.id, leg_id=leg.id)
        background_tasks.add_task(run_assessment_task, registration.id, facial_photo)
        return registration

    # ── Évaluation ────────────────────────────────────────────────────────────

    async def assess(
        self,
        db: AsyncSession,
        registration_id: int,
        *,
        facial_photo: Optional[bytes] = None,
        ai=None,
        now: Optional[datetime] = None,
    ) -> Optional[AssessmentOutcome]:
        """
        None si l'auto-approbation est désactivée (revue humaine directe).
        Lève AssessmentAlreadyRun si une évaluation a déjà été lancée.
        """
        registration = await repo.get_registration(db, registration_id)
        if not registration:
            raise LookupError("Inscription introuvable.")
        leg = registration.leg
        voyage = leg.voyage

        if not voyage.auto_approval_enabled:
            await dispatcher.notify(
                voyage.owner_id, NotificationKind.NEW_REGISTRATION,
                _payload(registration, leg, reason="auto_approval_disabled"),
            )
            logger.info("assessment.skipped", registration_id=registration_id, reason="auto_approval_disabled")
            return None

        started_at = now or datetime.now(timezone.utc)
        if not await repo.claim_assessment(db, registration_id, started_at):
            raise AssessmentAlreadyRun(f"registration {registration_id} already assessed")

        # Lu avant le pipeline : un rollback expire les objets ORM de la session
        crew_id, owner_id = registration.user_id, voyage.owner_id
        notice = _payload(registration, leg)

        try:
            outcome = await self._run_pipeline(db, registration, voyage, facial_photo, ai)
        except ConsentViolation:
            raise
        except Exception as e:
            # Claim déjà commité : l'inscription doit quand même recevoir une explication
            logger.exception("assessment.internal_error", registration_id=registration_id)
            await db.rollback()
            outcome = internal_error_outcome(type(e).__name__)

        finished_at = datetime.now(timezone.utc)
        written = await repo.save_outcome(
            db, registration_id, outcome=outcome, started_at=started_at, finished_at=finished_at,
        )
        logger.info(
            "assessment.completed",
            registration_id=registration_id,
            status=outcome.status.value,
            stopped_at=outcome.stopped_at.value if outcome.stopped_at else None,
            reason_code=outcome.reason_code,
            ai_calls=outcome.ai_calls,
            written=written,
        )
        if written:
            await self._notify_outcome(crew_id, owner_id, notice, outcome)
        return outcome

    async def _run_pipeline(self, db, registration, voyage, facial_photo, ai) -> AssessmentOutcome:
        registration_id = registration.id
        profile = await repo.get_profile(db, registration.user_id)
        answers = await repo.get_answers(db, registration_id)
        requirements = await voyage_repo.get_requirements(db, voyage.id)

        inp = AssessmentInput(
            registration_id=registration_id,
            owner_id=voyage.owner_id,
            passing_score=voyage.passing_score,
            requirements=requirements,
            answers={
                a.requirement_id: AnswerSnapshot(a.answer_text, a.passport_document_id) for a in answers
            },
            profile=_snapshot(profile, registration.user_id),
            facial_photo=facial_photo,
        )
        ports = AssessmentPorts(
            ai=ai or AIScoringClient(),
            validate_grant=lambda document_id, grantee_id, purpose: documents.validate_grant(
                db, document_id, grantee_id, purpose
            ),
            fetch_document=lambda document_id, grant: documents.fetch_document(db, document_id, grant),
        )
        return await RegistrationAssessmentPipeline(ports).run(inp)

    async def _notify_outcome(self, crew_id: int, owner_id: int, notice: Dict, outcome: AssessmentOutcome) -> None:
        payload = {**notice, "reason": outcome.reason_code, "aggregate_score": outcome.aggregate_score}

        if outcome.auto_approved:
            await dispatcher.notify(crew_id, NotificationKind.REGISTRATION_APPROVED, payload)
            await dispatcher.notify(owner_id, NotificationKind.AI_AUTO_APPROVED, payload)
            return

        failed = outcome.trace[-1].reason if outcome.trace else None
        crew_kind = (
            NotificationKind.REGISTRATION_GATE_FAILED
            if outcome.reason_code == "gate_failed"
            else NotificationKind.REGISTRATION_PENDING
        )
        await dispatcher.notify(crew_id, crew_kind, {**payload, "detail": failed})
        await dispatcher.notify(owner_id, NotificationKind.AI_REVIEW_NEEDED, payload)

    # ── Lecture ───────────────────────────────────────────────────────────────

    async def get_status(self, db: AsyncSession, registration_id: int, user: User) -> Registration:
        registration = await repo.get_registration(db, registration_id)
        if not registration:
            raise LookupError("Inscription introuvable.")
        if user.id not in (registration.user_id, registration.leg.voyage.owner_id):
            raise PermissionError("Accès refusé.")
        return registration

    # ── Décisions humaines ────────────────────────────────────────────────────

    async def review(self, db: AsyncSession, registration_id: int, payload, owner: User) -> Registration:
        registration = await repo.get_registration(db, registration_id)
        if not registration:
            raise LookupError("Inscription introuvable.")
        if registration.leg.voyage.owner_id != owner.id:
            raise PermissionError("Accès refusé.")

        approve = payload.decision == "approve"
        target = RegistrationStatus.APPROVED if approve else RegistrationStatus.NOT_APPROVED
        changed = await repo.transition(
            db, registration_id,
            from_statuses=[RegistrationStatus.PENDING_APPROVAL],
            to_status=target,
            owner_decided_at=datetime.now(timezone.utc),
            owner_note=payload.note,
        )
        if not changed:
            raise InvalidTransition(f"Cannot {payload.decision} a registration in status {registration.status.value}")

        await dispatcher.notify(
            registration.user_id,
            NotificationKind.REGISTRATION_APPROVED if approve else NotificationKind.REGISTRATION_DENIED,
            _payload(registration, registration.leg, reason="owner_decision"),
        )
        logger.info("registration.reviewed", registration_id=registration_id, decision=payload.decision)
        await db.refresh(registration)
        return registration

    async def cancel(self, db: AsyncSession, registration_id: int, crew: CrewProfile) -> Registration:
        registration = await repo.get_registration(db, registration_id)
        if not registration:
            raise LookupError("Inscription introuvable.")
        if registration.user_id != crew.user_id:
            raise PermissionError("Accès refusé.")

        changed = await repo.transition(
            db, registration_id,
            from_statuses=[RegistrationStatus.PENDING_APPROVAL, RegistrationStatus.APPROVED],
            to_status=RegistrationStatus.CANCELLED,
            crew_cancelled_at=datetime.now(timezone.utc),
        )
        if not changed:
            raise InvalidTransition(f"Cannot cancel a registration in status {registration.status.value}")
        logger.info("registration.cancelled", registration_id=registration_id)
        await db.refresh(registration)
        return registration


# ── Tâche de fond ─────────────────────────────────────────────────────────────

async def run_assessment_task(registration_id: int, facial_photo: Optional[bytes] = None) -> None:
    """Point d'entrée BackgroundTasks : session dédiée, jamais celle de la requête."""
    async with AsyncSessionLocal() as db:
        try:
            await RegistrationService().assess(db, registration_id, facial_photo=facial_photo)
        except AssessmentAlreadyRun:
            logger.info("assessment.already_run", registration_id=registration_id)
        except LookupError:
            logger.warning("assessment.registration_missing", registration_id=registration_id)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _decode_photo(value: Optional[str]) -> Optional[bytes]:
    if not value:
        return None
    if value.startswith("data:") and "," in value:
        value = value.split(",", 1)[1]
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("INVALID_FACIAL_PHOTO")


def _snapshot(profile: Optional[CrewProfile], user_id: int) -> ProfileSnapshot:
    if profile is None:
        return ProfileSnapshot(user_id, None, None, [], [], False)
    return ProfileSnapshot.from_profile(profile)


def _payload(registration, leg, reason: Optional[str] = None) -> Dict:
    return {
        "registration_id": registration.id,
        "leg_id": leg.id,
        "leg_name": leg.name,
        "voyage_id": leg.voyage_id,
        "crew_user_id": registration.user_id,
        "reason": reason,
    }
