# engine/assessment/requirements.py
"""
Exigences d'un voyage sous forme de variantes typées (union fermée).

    RiskLevelRequirement | ExperienceLevelRequirement | SkillRequirement
    | PassportRequirement | QuestionRequirement

from_row() convertit une ligne voyage_requirements (ORM ou snapshot) en
variante. Un kind inconnu ou une exigence de gate incomplète lève
InvalidRequirementConfig. Une rubrique absente sur skill/question n'est PAS
une erreur de parsing : elle est signalée au moment du scoring, pour ne
bloquer que cette exigence.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from sailcrew.shared.enums import ExperienceLevel, RequirementKind, RiskLevel
from sailcrew.shared.errors import InvalidRequirementConfig


# ── Variantes ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RiskLevelRequirement:
    id:       int
    required: RiskLevel


@dataclass(frozen=True)
class ExperienceLevelRequirement:
    id:        int
    min_level: int          # 1..4


@dataclass(frozen=True)
class SkillRequirement:
    id:          int
    skill_name:  str
    criteria:    Optional[str]
    weight:      int        # 0..10   (0 : consultatif, hors agrégat)


@dataclass(frozen=True)
class PassportRequirement:
    id:                        int
    requires_photo_validation: bool
    pass_confidence_score:     int      # 0..10
    is_required:               bool = True


@dataclass(frozen=True)
class QuestionRequirement:
    id:          int
    question:    str
    criteria:    Optional[str]
    is_required: bool = True


Requirement = Union[
    RiskLevelRequirement,
    ExperienceLevelRequirement,
    SkillRequirement,
    PassportRequirement,
    QuestionRequirement,
]

# Exigences qui déclenchent un appel IA
AI_KINDS = (PassportRequirement, SkillRequirement, QuestionRequirement)


# ── Parsing ───────────────────────────────────────────────────────────────────

def from_row(row) -> Requirement:
    kind = _kind(row)
    req_id = row.id

    if kind == RequirementKind.RISK_LEVEL:
        if not row.required_risk_level:
            raise InvalidRequirementConfig(req_id, "risk_level requirement without required_risk_level")
        try:
            return RiskLevelRequirement(req_id, RiskLevel(row.required_risk_level))
        except ValueError:
            raise InvalidRequirementConfig(req_id, f"unknown risk level {row.required_risk_level!r}")

    if kind == RequirementKind.EXPERIENCE_LEVEL:
        level = row.min_experience_level
        if level is None or level not in {e.value for e in ExperienceLevel}:
            raise InvalidRequirementConfig(req_id, f"experience level must be 1-4, got {level!r}")
        return ExperienceLevelRequirement(req_id, int(level))

    if kind == RequirementKind.SKILL:
        if not row.skill_name:
            raise InvalidRequirementConfig(req_id, "skill requirement without skill_name")
        weight = row.weight if row.weight is not None else 5
        if not 0 <= weight <= 10:
            raise InvalidRequirementConfig(req_id, f"weight must be 0-10, got {weight}")
        return SkillRequirement(
            req_id, row.skill_name, _blank_to_none(row.qualification_criteria),
            int(weight),
        )

    if kind == RequirementKind.PASSPORT:
        threshold = row.pass_confidence_score if row.pass_confidence_score is not None else 7
        if not 0 <= threshold <= 10:
            raise InvalidRequirementConfig(req_id, f"pass_confidence_score must be 0-10, got {threshold}")
        return PassportRequirement(
            req_id, bool(row.requires_photo_validation), int(threshold), bool(row.is_required),
        )

    if kind == RequirementKind.QUESTION:
        if not row.question_text:
            raise InvalidRequirementConfig(req_id, "question requirement without question_text")
        return QuestionRequirement(
            req_id, row.question_text, _blank_to_none(row.qualification_criteria), bool(row.is_required),
        )

    raise InvalidRequirementConfig(req_id, f"unsupported requirement kind {kind!r}")


def parse_requirements(rows: Iterable) -> List[Requirement]:
    ordered = sorted(rows, key=lambda r: (getattr(r, "order", 0) or 0, r.id))
    return [from_row(r) for r in ordered]


def of_type(requirements: Iterable[Requirement], cls) -> list:
    return [r for r in requirements if isinstance(r, cls)]


def _kind(row) -> RequirementKind:
    try:
        return RequirementKind(row.kind)
    except ValueError:
        raise InvalidRequirementConfig(row.id, f"unsupported requirement kind {row.kind!r}")


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not str(value).strip():
        return None
    return value
