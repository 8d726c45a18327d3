# engine/assessment/scoring.py
"""
SkillAndQuestionAssessor : scoring IA des skills et des questions.

Agrégat :
    aggregate = Σ(weight × score) / Σ(weight)

    Par défaut sur les skills uniquement. Les questions sont consultatives :
    leur score et leur rationale sont ajoutés au raisonnement, sans poids.
    Avec questions_count=True, chaque question compte avec question_weight.

    Σ(weight) = 0 → pas d'agrégat possible → revue manuelle.

Échecs par exigence (jamais fatals pour le pipeline) :
    InvalidRequirementConfig (rubrique absente) → cette exigence passe en
                                                   revue manuelle
    ProviderUnavailable                          → arrêt du scoring, revue manuelle
    Skill sans auto-description                  → score 0, pas d'appel IA

Exemple :
    skills {(w=10, s=8), (w=5, s=4)} → (80 + 20) / 15 = 6.0
    passing_score 6 → passe ; passing_score 7 → échoue
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from sailcrew.core.config import settings
from sailcrew.engine.ai import prompts
from sailcrew.engine.assessment.requirements import QuestionRequirement, SkillRequirement
from sailcrew.shared.errors import InvalidRequirementConfig, ProviderUnavailable

logger = structlog.get_logger(__name__)


# ── Dataclasses ───────────────────────────────────────────────────────────────

@dataclass
class RequirementScore:
    requirement_id: int
    score:          Optional[float]        # 0..10, None si non scoré
    reasoning:      str
    passed:         Optional[bool] = None
    needs_review:   bool = False           # Échec de config / fournisseur sur CETTE exigence


@dataclass
class ScoringResult:
    scores:    List[RequirementScore] = field(default_factory=list)
    aggregate: Optional[float] = None
    passed:    bool = False
    reason:    str = ""
    reason_code: Optional[str] = None      # "below_threshold" | "misconfigured" | ...
    ai_calls:  int = 0


# ── Agrégat ───────────────────────────────────────────────────────────────────

def weighted_aggregate(pairs: Iterable[Tuple[float, float]]) -> Optional[float]:
    """pairs = [(weight, score)]. None si le poids total est nul."""
    total_weight = 0.0
    total = 0.0
    for weight, score in pairs:
        total_weight += weight
        total += weight * score
    if total_weight <= 0:
        return None
    return round(total / total_weight, 4)


def skills_by_name(profile_skills: Optional[Sequence[Dict]]) -> Dict[str, str]:
    """[{skill_name, description}] → {nom normalisé: description littérale}"""
    out: Dict[str, str] = {}
    for item in profile_skills or ():
        name = (item.get("skill_name") or "").strip().lower()
        if name:
            out[name] = (item.get("description") or "").strip()
    return out


# ── Assessor ──────────────────────────────────────────────────────────────────

class SkillAndQuestionAssessor:

    def __init__(self, ai, questions_count: Optional[bool] = None, question_weight: Optional[int] = None):
        self.ai = ai
        self.questions_count = (
            settings.QUESTIONS_COUNT_IN_AGGREGATE if questions_count is None else questions_count
        )
        self.question_weight = settings.QUESTION_WEIGHT if question_weight is None else question_weight

    async def assess(
        self,
        skills: Sequence[SkillRequirement],
        questions: Sequence[QuestionRequirement],
        *,
        profile_skills: Optional[Sequence[Dict]],
        answers: Dict[int, Optional[str]],
        passing_score: float,
        consent_asserted: bool,
    ) -> ScoringResult:
        result = ScoringResult()
        descriptions = skills_by_name(profile_skills)
        weighted: List[Tuple[float, float]] = []
        misconfigured: List[int] = []

        try:
            for req in skills:
                try:
                    scored = await self._score_skill(req, descriptions, consent_asserted, result)
                except InvalidRequirementConfig as e:
                    scored = _misconfigured(e)
                result.scores.append(scored)
                if scored.needs_review:
                    misconfigured.append(req.id)
                elif scored.score is not None:
                    weighted.append((req.weight, scored.score))

            for req in questions:
                try:
                    scored = await self._score_question(req, answers.get(req.id), consent_asserted, result)
                except InvalidRequirementConfig as e:
                    scored = _misconfigured(e)
                result.scores.append(scored)
                if scored.needs_review:
                    misconfigured.append(req.id)
                elif scored.score is not None and self.questions_count:
                    weighted.append((self.question_weight, scored.score))

        except ProviderUnavailable as e:
            logger.warning("assessment.scoring_provider_unavailable", attempts=len(e.attempts))
            result.reason = "AI providers unavailable during skill scoring; manual review required"
            result.reason_code = "provider_unavailable"
            return result

        result.aggregate = weighted_aggregate(weighted)

        if misconfigured:
            result.reason = f"Requirements {misconfigured} could not be scored (misconfigured); manual review required"
            result.reason_code = "misconfigured"
        elif result.aggregate is None:
            result.reason = "No weighted skill to aggregate; manual review required"
            result.reason_code = "no_weight"
        elif result.aggregate >= passing_score:
            result.passed = True
            result.reason = f"Aggregate score {result.aggregate:.2f} ≥ passing score {passing_score:g}"
        else:
            result.reason = f"Aggregate score {result.aggregate:.2f} < passing score {passing_score:g}"
            result.reason_code = "below_threshold"
        return result

    # ── Interne ───────────────────────────────────────────────────────────────

    async def _score_skill(self, req: SkillRequirement, descriptions, consent_asserted, result) -> RequirementScore:
        if not req.criteria:
            raise InvalidRequirementConfig(req.id, f"skill '{req.skill_name}' has no qualification criteria")

        description = descriptions.get(req.skill_name.strip().lower())
        if not description:
            return RequirementScore(req.id, 0.0, f"No self-description for '{req.skill_name}'")

        rubric, candidate = prompts.skill_prompt(req.skill_name, req.criteria, description)
        result.ai_calls += 1
        scored = await self.ai.score(rubric, candidate, consent_asserted=consent_asserted)
        return RequirementScore(req.id, scored.score, scored.rationale)

    async def _score_question(self, req: QuestionRequirement, answer, consent_asserted, result) -> RequirementScore:
        if not req.criteria:
            raise InvalidRequirementConfig(req.id, "question has no grading rubric")
        if not answer or not answer.strip():
            return RequirementScore(req.id, None, "Not answered")

        rubric, candidate = prompts.question_prompt(req.question, req.criteria, answer)
        result.ai_calls += 1
        scored = await self.ai.score(rubric, candidate, consent_asserted=consent_asserted)
        return RequirementScore(req.id, scored.score, scored.rationale)


def _misconfigured(e: InvalidRequirementConfig) -> RequirementScore:
    logger.info("assessment.requirement_misconfigured", requirement_id=e.requirement_id, reason=e.reason)
    return RequirementScore(e.requirement_id, None, e.reason, needs_review=True)
