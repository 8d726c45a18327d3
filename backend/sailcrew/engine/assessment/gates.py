# engine/assessment/gates.py
"""
DeterministicGateEvaluator : compatibilité risque / expérience, sans IA.

Risque      : passe SSI le niveau requis ∈ ensemble de confort du marin
              (inclusion, pas égalité : un marin Coastal+Offshore passe un leg Coastal)
Expérience  : passe SSI niveau marin ≥ niveau requis (ordinal 1..4)

Utilisé par le pipeline d'évaluation ET par le pré-filtre du batch de matching.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional

from sailcrew.shared.enums import AssessmentStage, ExperienceLevel, RiskLevel
from sailcrew.shared.errors import GateFailed


EXPERIENCE_LABELS = {
    ExperienceLevel.BEGINNER:         "Beginner",
    ExperienceLevel.COMPETENT_CREW:   "Competent Crew",
    ExperienceLevel.COASTAL_SKIPPER:  "Coastal Skipper",
    ExperienceLevel.OFFSHORE_SKIPPER: "Offshore Skipper",
}


@dataclass(frozen=True)
class GateResult:
    gate:   AssessmentStage
    passed: bool
    reason: str


def comfort_set(values: Optional[Iterable]) -> set:
    """Normalise la liste JSON du profil : les valeurs inconnues sont ignorées."""
    out = set()
    for v in values or ():
        try:
            out.add(RiskLevel(v))
        except ValueError:
            continue
    return out


def evaluate_risk(candidate_comfort: Optional[Iterable], required: RiskLevel) -> GateResult:
    required = RiskLevel(required)
    comfort = comfort_set(candidate_comfort)
    if required in comfort:
        return GateResult(AssessmentStage.RISK_GATE, True, f"Comfortable with {required.value}")
    declared = ", ".join(sorted(c.value for c in comfort)) or "none"
    return GateResult(
        AssessmentStage.RISK_GATE, False,
        f"Leg requires {required.value}; profile risk comfort is {declared}",
    )


def evaluate_experience(candidate_level: Optional[int], required_level: int) -> GateResult:
    required_label = _label(required_level)
    if candidate_level is None:
        return GateResult(
            AssessmentStage.EXPERIENCE_GATE, False,
            f"Leg requires {required_label}; profile has no experience level",
        )
    if int(candidate_level) >= int(required_level):
        return GateResult(AssessmentStage.EXPERIENCE_GATE, True, f"{_label(candidate_level)} ≥ {required_label}")
    return GateResult(
        AssessmentStage.EXPERIENCE_GATE, False,
        f"Leg requires {required_label}; profile is {_label(candidate_level)}",
    )


def _label(level: int) -> str:
    try:
        return f"{EXPERIENCE_LABELS[ExperienceLevel(int(level))]} ({int(level)})"
    except ValueError:
        return str(level)


def require(result: GateResult) -> GateResult:
    """Lève GateFailed si la gate échoue : arrêt terminal du pipeline."""
    if not result.passed:
        raise GateFailed(result.gate, result.reason)
    return result
