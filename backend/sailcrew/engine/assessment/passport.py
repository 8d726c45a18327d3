# engine/assessment/passport.py
"""
PassportAssessor : validation d'identité par document + IA.

    1. validate_grant(document_id, grantee=owner du voyage, identity_verification)
       GrantMissing / GrantExpired → échec (arrêt PendingApproval)
    2. fetch_document(document_id, grant) → (bytes, mime)
    3. IA : passeport valide + nom du titulaire ≈ nom du profil → confiance c₁
    4. si requires_photo_validation : photo faciale capturée à l'instant
       (jamais persistée) + IA face-match → confiance c₂
       combiné = min(c₁, c₂)   : un maillon faible invalide tout le contrôle
    5. combiné ≥ pass_confidence_score → le pipeline continue

Toute erreur fournisseur = échec du contrôle, pas un crash.
ConsentViolation n'est jamais rattrapée.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, Optional, Tuple

import structlog

from sailcrew.engine.ai import prompts
from sailcrew.engine.assessment.requirements import PassportRequirement
from sailcrew.shared.enums import GrantPurpose
from sailcrew.shared.errors import GrantError, GrantExpired, ProviderUnavailable

logger = structlog.get_logger(__name__)

ValidateGrant = Callable[[int, int, GrantPurpose], Awaitable[object]]
FetchDocument = Callable[[int, object], Awaitable[Tuple[bytes, str]]]

FACIAL_PHOTO_MIME = "image/jpeg"


@dataclass
class PassportResult:
    requirement_id: int
    passed:         bool
    confidence:     Optional[float]
    reason:         str
    reason_code:    Optional[str] = None   # "grant_missing" | "grant_expired" | "provider_unavailable" | ...
    ai_calls:       int = 0


class PassportAssessor:

    def __init__(
        self,
        ai,
        validate_grant: ValidateGrant,
        fetch_document: FetchDocument,
        today: Optional[date] = None,
    ):
        self.ai = ai
        self.validate_grant = validate_grant
        self.fetch_document = fetch_document
        self.today = today

    async def assess(
        self,
        req: PassportRequirement,
        *,
        document_id: Optional[int],
        grantee_id: int,
        profile_name: Optional[str],
        facial_photo: Optional[bytes],
        consent_asserted: bool,
    ) -> PassportResult:
        if document_id is None:
            return PassportResult(req.id, False, None, "No passport document provided", "missing_document")

        # ── 1. Grant ──────────────────────────────────────────────────────────
        try:
            grant = await self.validate_grant(document_id, grantee_id, GrantPurpose.IDENTITY_VERIFICATION)
        except GrantError as e:
            code = "grant_expired" if isinstance(e, GrantExpired) else "grant_missing"
            logger.info("assessment.passport_grant_denied", document_id=document_id, reason=e.reason)
            return PassportResult(req.id, False, None, f"Document access not granted: {e.reason}", code)

        # ── 2. Document ───────────────────────────────────────────────────────
        try:
            content, mime_type = await self.fetch_document(document_id, grant)
        except (OSError, LookupError) as e:
            logger.warning("assessment.passport_fetch_failed", document_id=document_id, error=type(e).__name__)
            return PassportResult(req.id, False, None, "Passport document could not be read", "document_unreadable")

        if req.requires_photo_validation and not facial_photo:
            return PassportResult(req.id, False, None, "Facial photo required but not provided", "missing_photo")

        # ── 3-4. IA ───────────────────────────────────────────────────────────
        calls = 0
        today = self.today or datetime.now(timezone.utc).date()
        try:
            rubric, candidate = prompts.passport_prompt(profile_name or "", today)
            calls += 1
            doc_check = await self.ai.score(
                rubric, candidate, consent_asserted=consent_asserted, images=[(content, mime_type)],
            )
            confidence = doc_check.score
            reasons = [f"Document check {doc_check.score:g}/10: {doc_check.rationale}"]

            if req.requires_photo_validation:
                rubric, candidate = prompts.photo_match_prompt()
                calls += 1
                face = await self.ai.score(
                    rubric, candidate, consent_asserted=consent_asserted,
                    images=[(content, mime_type), (facial_photo, FACIAL_PHOTO_MIME)],
                )
                confidence = min(confidence, face.score)
                reasons.append(f"Face match {face.score:g}/10: {face.rationale}")
        except ProviderUnavailable:
            return PassportResult(
                req.id, False, None, "AI providers unavailable during passport check",
                "provider_unavailable", ai_calls=calls,
            )

        # ── 5. Seuil ──────────────────────────────────────────────────────────
        passed = confidence >= req.pass_confidence_score
        verdict = "≥" if passed else "<"
        reasons.append(f"Confidence {confidence:g} {verdict} required {req.pass_confidence_score}")
        return PassportResult(
            req.id, passed, confidence, "; ".join(reasons),
            None if passed else "below_threshold", ai_calls=calls,
        )
