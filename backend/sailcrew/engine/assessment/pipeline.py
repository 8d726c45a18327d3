# engine/assessment/pipeline.py
"""
RegistrationAssessmentPipeline : machine à états d'une évaluation.

    Submitted → RiskGate → ExperienceGate → ConsentCheck → PassportGate → SkillScoring → Decision

Chaque étape est un arrêt terminal potentiel. Ordre strict : une étape
n'est exécutée (et payée) que si la précédente a réussi. Les gates
déterministes passent avant tout appel IA.

Résultat :
    Decision atteinte → status=Approved, auto_approved=True
    Tout arrêt        → status=PendingApproval, auto_approved=False,
                        stopped_at + raison explicite
    Le pipeline ne produit JAMAIS NotApproved (décision humaine uniquement).

Pureté :
    run() est une fonction de (exigences, réponses, snapshot profil) + ports
    injectés (IA, grant, document). Aucune lecture de session/contexte
    ambiant, aucune écriture DB : la persistance est faite par
    modules/registration/service.py.

Erreurs :
    GateFailed, GrantError, ProviderUnavailable, InvalidRequirementConfig
    → converties en arrêt PendingApproval.
    ConsentViolation → propagée (bug appelant).
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence

import structlog

from sailcrew.engine.assessment import gates
from sailcrew.engine.assessment.passport import FetchDocument, PassportAssessor, ValidateGrant
from sailcrew.engine.assessment.requirements import (
    ExperienceLevelRequirement, PassportRequirement, QuestionRequirement,
    Requirement, RiskLevelRequirement, SkillRequirement, parse_requirements,
)
from sailcrew.engine.assessment.scoring import SkillAndQuestionAssessor
from sailcrew.shared.enums import AssessmentStage, RegistrationStatus
from sailcrew.shared.errors import GateFailed, InvalidRequirementConfig

logger = structlog.get_logger(__name__)


# ── Entrées ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ProfileSnapshot:
    """Copie figée du profil au moment de l'évaluation."""
    user_id:               int
    full_name:             Optional[str]
    experience_level:      Optional[int]
    risk_comfort:          List[str]
    skills:                List[Dict]
    ai_processing_consent: bool

    @classmethod
    def from_profile(cls, profile) -> "ProfileSnapshot":
        return cls(
            user_id=profile.user_id,
            full_name=profile.full_name,
            experience_level=profile.experience_level,
            risk_comfort=list(profile.risk_comfort or []),
            skills=list(profile.skills or []),
            ai_processing_consent=bool(profile.ai_processing_consent),
        )


@dataclass(frozen=True)
class AnswerSnapshot:
    text:                 Optional[str] = None
    passport_document_id: Optional[int] = None


@dataclass
class AssessmentInput:
    registration_id: int
    owner_id:        int                  # grantee attendu pour le passeport
    passing_score:   float
    requirements:    Sequence             # lignes voyage_requirements
    answers:         Dict[int, AnswerSnapshot]
    profile:         ProfileSnapshot
    facial_photo:    Optional[bytes] = None   # en vol uniquement, jamais persisté


@dataclass
class AssessmentPorts:
    ai:             object
    validate_grant: ValidateGrant
    fetch_document: FetchDocument
    today:          Optional[date] = None


# ── Sorties ───────────────────────────────────────────────────────────────────

@dataclass
class StepTrace:
    stage:  AssessmentStage
    passed: bool
    reason: str

    def to_dict(self) -> Dict:
        return {"stage": self.stage.value, "passed": self.passed, "reason": self.reason}


@dataclass
class AnswerScore:
    requirement_id: int
    score:          Optional[float]
    reasoning:      str
    passed:         Optional[bool] = None


@dataclass
class AssessmentOutcome:
    status:          RegistrationStatus
    auto_approved:   bool
    stopped_at:      Optional[AssessmentStage]
    reason_code:     Optional[str]
    reasoning:       str
    aggregate_score: Optional[float] = None
    answer_scores:   List[AnswerScore] = field(default_factory=list)
    trace:           List[StepTrace] = field(default_factory=list)
    ai_calls:        int = 0

    @property
    def needs_review(self) -> bool:
        return not self.auto_approved


@dataclass
class _Requirements:
    risk:       List[RiskLevelRequirement] = field(default_factory=list)
    experience: List[ExperienceLevelRequirement] = field(default_factory=list)
    passport:   List[PassportRequirement] = field(default_factory=list)
    skill:      List[SkillRequirement] = field(default_factory=list)
    question:   List[QuestionRequirement] = field(default_factory=list)

    @property
    def needs_ai(self) -> bool:
        return bool(self.passport or self.skill or self.question)


class _Run:
    """Accumulateur d'une exécution (trace, scores, compteur IA)."""

    def __init__(self):
        self.trace: List[StepTrace] = []
        self.answer_scores: List[AnswerScore] = []
        self.aggregate: Optional[float] = None
        self.ai_calls = 0

    def passed(self, stage: AssessmentStage, reason: str) -> None:
        self.trace.append(StepTrace(stage, True, reason))

    def stop(self, stage: AssessmentStage, reason: str, code: Optional[str]) -> AssessmentOutcome:
        self.trace.append(StepTrace(stage, False, reason))
        return self._outcome(RegistrationStatus.PENDING_APPROVAL, False, stage, code)

    def approve(self) -> AssessmentOutcome:
        self.trace.append(StepTrace(AssessmentStage.DECISION, True, "All configured checks passed"))
        return self._outcome(RegistrationStatus.APPROVED, True, None, None)

    def _outcome(self, status, auto_approved, stopped_at, code) -> AssessmentOutcome:
        lines = [f"[{t.stage.value}] {'OK' if t.passed else 'STOP'}: {t.reason}" for t in self.trace]
        lines += [
            f"Requirement {a.requirement_id}: "
            f"{'n/a' if a.score is None else f'{a.score:g}/10'} ({a.reasoning})"
            for a in self.answer_scores
        ]
        return AssessmentOutcome(
            status=status,
            auto_approved=auto_approved,
            stopped_at=stopped_at,
            reason_code=code,
            reasoning="\n".join(lines),
            aggregate_score=self.aggregate,
            answer_scores=list(self.answer_scores),
            trace=list(self.trace),
            ai_calls=self.ai_calls,
        )


def internal_error_outcome(error_name: str) -> AssessmentOutcome:
    """Arrêt PendingApproval quand l'évaluation a planté hors des erreurs métier."""
    return AssessmentOutcome(
        status=RegistrationStatus.PENDING_APPROVAL,
        auto_approved=False,
        stopped_at=None,
        reason_code="internal_error",
        reasoning=f"Assessment could not complete ({error_name}); manual review required",
    )


# ── Pipeline ──────────────────────────────────────────────────────────────────

class RegistrationAssessmentPipeline:

    def __init__(self, ports: AssessmentPorts, scorer: Optional[SkillAndQuestionAssessor] = None):
        self.ports = ports
        self.scorer = scorer or SkillAndQuestionAssessor(ports.ai)
        self.passport = PassportAssessor(
            ports.ai, ports.validate_grant, ports.fetch_document, today=ports.today,
        )

    async def run(self, inp: AssessmentInput) -> AssessmentOutcome:
        run = _Run()
        log = logger.bind(registration_id=inp.registration_id)

        # ── Submitted ─────────────────────────────────────────────────────────
        try:
            reqs = _bucket(parse_requirements(inp.requirements))
        except InvalidRequirementConfig as e:
            log.info("assessment.stopped", stage="Submitted", code="misconfigured")
            return run.stop(AssessmentStage.SUBMITTED, f"Misconfigured requirement: {e}", "misconfigured")

        total = sum(len(v) for v in (reqs.risk, reqs.experience, reqs.passport, reqs.skill, reqs.question))
        if total == 0:
            return run.stop(
                AssessmentStage.SUBMITTED, "No requirements configured; manual review required", "no_requirements",
            )

        missing = _missing_required_answers(reqs, inp.answers)
        if missing:
            return run.stop(
                AssessmentStage.SUBMITTED, f"Missing answers for required requirements {missing}", "missing_answers",
            )
        run.passed(AssessmentStage.SUBMITTED, f"{total} requirement(s) configured")

        # ── Gates déterministes ──────────────────────────────────────────────
        try:
            for req in reqs.risk:
                gates.require(gates.evaluate_risk(inp.profile.risk_comfort, req.required))
            if reqs.risk:
                run.passed(AssessmentStage.RISK_GATE, "Risk level compatible")

            for req in reqs.experience:
                gates.require(gates.evaluate_experience(inp.profile.experience_level, req.min_level))
            if reqs.experience:
                run.passed(AssessmentStage.EXPERIENCE_GATE, "Experience level sufficient")
        except GateFailed as e:
            log.info("assessment.gate_failed", gate=e.gate.value, reason=e.reason)
            return run.stop(e.gate, e.reason, "gate_failed")

        # ── Consentement IA ──────────────────────────────────────────────────
        consent = inp.profile.ai_processing_consent is True
        if reqs.needs_ai:
            if not consent:
                log.info("assessment.stopped", stage="ConsentCheck", code="no_ai_consent")
                return run.stop(
                    AssessmentStage.CONSENT_CHECK,
                    "AI processing consent not given; manual review required",
                    "no_ai_consent",
                )
            run.passed(AssessmentStage.CONSENT_CHECK, "AI processing consent given")

        # ── Passeport ────────────────────────────────────────────────────────
        for req in reqs.passport:
            answer = inp.answers.get(req.id) or AnswerSnapshot()
            if answer.passport_document_id is None and not req.is_required:
                run.passed(AssessmentStage.PASSPORT_GATE, f"Optional passport requirement {req.id} skipped")
                continue
            result = await self.passport.assess(
                req,
                document_id=answer.passport_document_id,
                grantee_id=inp.owner_id,
                profile_name=inp.profile.full_name,
                facial_photo=inp.facial_photo,
                consent_asserted=consent,
            )
            run.ai_calls += result.ai_calls
            run.answer_scores.append(AnswerScore(req.id, result.confidence, result.reason, result.passed))
            if not result.passed:
                log.info("assessment.stopped", stage="PassportGate", code=result.reason_code)
                return run.stop(AssessmentStage.PASSPORT_GATE, result.reason, result.reason_code)
        if reqs.passport:
            run.passed(AssessmentStage.PASSPORT_GATE, "Identity document validated")

        # ── Skills / questions ───────────────────────────────────────────────
        if reqs.skill or reqs.question:
            scoring = await self.scorer.assess(
                reqs.skill,
                reqs.question,
                profile_skills=inp.profile.skills,
                answers={rid: a.text for rid, a in inp.answers.items()},
                passing_score=inp.passing_score,
                consent_asserted=consent,
            )
            run.ai_calls += scoring.ai_calls
            run.aggregate = scoring.aggregate
            run.answer_scores.extend(
                AnswerScore(s.requirement_id, s.score, s.reasoning, s.passed) for s in scoring.scores
            )
            if not scoring.passed:
                log.info("assessment.stopped", stage="SkillScoring", code=scoring.reason_code)
                return run.stop(AssessmentStage.SKILL_SCORING, scoring.reason, scoring.reason_code)
            run.passed(AssessmentStage.SKILL_SCORING, scoring.reason)

        log.info("assessment.auto_approved", ai_calls=run.ai_calls)
        return run.approve()


# ── Helpers ───────────────────────────────────────────────────────────────────

def _bucket(requirements: Sequence[Requirement]) -> _Requirements:
    out = _Requirements()
    for req in requirements:
        if isinstance(req, RiskLevelRequirement):
            out.risk.append(req)
        elif isinstance(req, ExperienceLevelRequirement):
            out.experience.append(req)
        elif isinstance(req, PassportRequirement):
            out.passport.append(req)
        elif isinstance(req, SkillRequirement):
            out.skill.append(req)
        elif isinstance(req, QuestionRequirement):
            out.question.append(req)
        else:
            raise TypeError(f"unhandled requirement variant {type(req).__name__}")
    return out


def _missing_required_answers(reqs: _Requirements, answers: Dict[int, AnswerSnapshot]) -> List[int]:
    missing = []
    for req in reqs.question:
        answer = answers.get(req.id)
        if req.is_required and (answer is None or not (answer.text or "").strip()):
            missing.append(req.id)
    for req in reqs.passport:
        answer = answers.get(req.id)
        if req.is_required and (answer is None or answer.passport_document_id is None):
            missing.append(req.id)
    return sorted(missing)
