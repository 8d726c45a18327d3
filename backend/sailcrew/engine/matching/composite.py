# engine/matching/composite.py
"""
Matching proactif : pré-filtre déterministe + score composite (0-100).

Pré-filtre (éliminatoire, sans IA) :
    matching_consent présent
    gate risque + gate expérience (engine/assessment/gates.py)
    pas déjà inscrit ni ayant décliné ce leg

Composite : cinq composantes ∈ [0, 1] pondérées (settings.MATCHING_WEIGHTS) :

    skills      |skills_leg ∩ skills_marin| / |skills_leg|     (1.0 si le leg n'en liste aucun)
    experience  1.0 si niveau ≥ minimum                        (garanti par le pré-filtre)
    risk        1.0 si niveau du leg ∈ confort                 (garanti par le pré-filtre)
    dates       fraction des jours du leg couverts par la disponibilité
                0.5 si disponibilité non déclarée
    location    1 − d / rayon, bornée à [0, 1]   (d = haversine port d'attache → départ)
                0.5 si coordonnées inconnues

    composite = 100 × Σ wᵢ·cᵢ / Σ wᵢ

Le calcul est vectorisé (numpy) sur l'ensemble des candidats d'un leg.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Set

import numpy as np

from sailcrew.core.config import settings
from sailcrew.engine.assessment import gates
from sailcrew.shared.enums import RiskLevel


EARTH_RADIUS_KM = 6371.0
NEUTRAL = 0.5

COMPONENTS = ("skills", "experience", "risk", "dates", "location")


# ── Snapshots ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LegSnapshot:
    id:                   int
    voyage_id:            int
    owner_id:             int
    name:                 str
    start_date:           datetime
    end_date:             datetime
    risk_level:           Optional[RiskLevel] = None
    min_experience_level: Optional[int] = None
    skills:               Sequence[str] = ()
    latitude:             Optional[float] = None
    longitude:            Optional[float] = None

    def to_prompt(self) -> Dict:
        return {
            "name": self.name,
            "risk_level": self.risk_level.value if self.risk_level else None,
            "min_experience_level": self.min_experience_level,
            "skills": list(self.skills),
            "start_date": self.start_date.date().isoformat(),
            "end_date": self.end_date.date().isoformat(),
        }


@dataclass(frozen=True)
class CandidateSnapshot:
    user_id:               int
    experience_level:      Optional[int]
    risk_comfort:          Sequence[str] = ()
    skills:                Sequence[Dict] = ()
    latitude:              Optional[float] = None
    longitude:             Optional[float] = None
    availability_start:    Optional[date] = None
    availability_end:      Optional[date] = None
    matching_consent:      bool = False
    ai_processing_consent: bool = False

    @classmethod
    def from_profile(cls, profile) -> "CandidateSnapshot":
        return cls(
            user_id=profile.user_id,
            experience_level=profile.experience_level,
            risk_comfort=tuple(profile.risk_comfort or ()),
            skills=tuple(profile.skills or ()),
            latitude=profile.latitude,
            longitude=profile.longitude,
            availability_start=profile.availability_start,
            availability_end=profile.availability_end,
            matching_consent=bool(profile.matching_consent),
            ai_processing_consent=bool(profile.ai_processing_consent),
        )

    def to_prompt(self) -> Dict:
        return {
            "experience_level": self.experience_level,
            "risk_comfort": list(self.risk_comfort),
            "skills": list(self.skills),
        }


@dataclass
class RankedCandidate:
    candidate:  CandidateSnapshot
    composite:  float                  # 0..100
    components: Dict[str, float] = field(default_factory=dict)


# ── Pré-filtre ────────────────────────────────────────────────────────────────

def prefilter_reason(leg: LegSnapshot, candidate: CandidateSnapshot, excluded: Set[int]) -> Optional[str]:
    """None si le candidat passe, sinon le motif d'exclusion."""
    if not candidate.matching_consent:
        return "no_matching_consent"
    if candidate.user_id == leg.owner_id:
        return "owner"
    if candidate.user_id in excluded:
        return "already_registered_or_declined"
    if leg.risk_level and not gates.evaluate_risk(candidate.risk_comfort, leg.risk_level).passed:
        return "risk"
    if leg.min_experience_level and not gates.evaluate_experience(
        candidate.experience_level, leg.min_experience_level
    ).passed:
        return "experience"
    return None


def prefilter(
    leg: LegSnapshot,
    candidates: Iterable[CandidateSnapshot],
    excluded: Set[int],
) -> List[CandidateSnapshot]:
    return [c for c in candidates if prefilter_reason(leg, c, excluded) is None]


def shortlist(
    leg: LegSnapshot,
    candidates: Iterable[CandidateSnapshot],
    excluded: Set[int],
    limit: Optional[int] = None,
    weights: Optional[Dict[str, float]] = None,
    radius_km: Optional[float] = None,
) -> List[RankedCandidate]:
    """Tous les éligibles sont classés, la limite s'applique ensuite aux meilleurs."""
    ranked = rank(leg, prefilter(leg, candidates, excluded), weights, radius_km)
    return ranked[:limit] if limit else ranked


# ── Composantes ───────────────────────────────────────────────────────────────

def skills_overlap(leg_skills: Sequence[str], candidate_skills: Sequence[Dict]) -> float:
    wanted = {s.strip().lower() for s in leg_skills if s and s.strip()}
    if not wanted:
        return 1.0
    have = {(s.get("skill_name") or "").strip().lower() for s in candidate_skills}
    return len(wanted & have) / len(wanted)


def date_overlap(leg: LegSnapshot, candidate: CandidateSnapshot) -> float:
    if candidate.availability_start is None and candidate.availability_end is None:
        return NEUTRAL
    leg_start, leg_end = leg.start_date.date(), leg.end_date.date()
    start = max(leg_start, candidate.availability_start or leg_start)
    end = min(leg_end, candidate.availability_end or leg_end)
    leg_days = (leg_end - leg_start).days + 1
    covered = (end - start).days + 1
    if covered <= 0 or leg_days <= 0:
        return 0.0
    return min(covered / leg_days, 1.0)


def haversine_km(lat1, lon1, lat2, lon2):
    """Accepte des scalaires ou des tableaux numpy."""
    lat1, lon1, lat2, lon2 = map(np.radians, (lat1, lon1, lat2, lon2))
    a = np.sin((lat2 - lat1) / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin((lon2 - lon1) / 2) ** 2
    return 2 * EARTH_RADIUS_KM * np.arcsin(np.sqrt(a))


def location_affinity(leg: LegSnapshot, candidates: Sequence[CandidateSnapshot], radius_km: float) -> np.ndarray:
    out = np.full(len(candidates), NEUTRAL)
    if leg.latitude is None or leg.longitude is None or not candidates:
        return out
    known = np.array([c.latitude is not None and c.longitude is not None for c in candidates])
    if not known.any():
        return out
    lats = np.array([c.latitude for c in candidates if c.latitude is not None and c.longitude is not None], dtype=float)
    lons = np.array([c.longitude for c in candidates if c.latitude is not None and c.longitude is not None], dtype=float)
    dist = haversine_km(leg.latitude, leg.longitude, lats, lons)
    out[known] = np.clip(1.0 - dist / radius_km, 0.0, 1.0)
    return out


# ── Composite ─────────────────────────────────────────────────────────────────

def rank(
    leg: LegSnapshot,
    candidates: Sequence[CandidateSnapshot],
    weights: Optional[Dict[str, float]] = None,
    radius_km: Optional[float] = None,
) -> List[RankedCandidate]:
    """Composite pour chaque candidat, trié décroissant (égalité : user_id croissant)."""
    if not candidates:
        return []
    weights = weights or settings.MATCHING_WEIGHTS
    radius_km = radius_km or settings.MATCHING_LOCATION_RADIUS_KM

    w = np.array([float(weights.get(k, 0.0)) for k in COMPONENTS])
    if w.sum() <= 0:
        raise ValueError("matching weights must not all be zero")

    matrix = np.column_stack([
        [skills_overlap(leg.skills, c.skills) for c in candidates],
        [_experience_fit(leg, c) for c in candidates],
        [_risk_fit(leg, c) for c in candidates],
        [date_overlap(leg, c) for c in candidates],
        location_affinity(leg, candidates, radius_km),
    ]).astype(float)

    totals = 100.0 * (matrix @ w) / w.sum()

    ranked = [
        RankedCandidate(
            candidate=c,
            composite=round(float(totals[i]), 2),
            components={k: round(float(matrix[i, j]), 4) for j, k in enumerate(COMPONENTS)},
        )
        for i, c in enumerate(candidates)
    ]
    ranked.sort(key=lambda r: (-r.composite, r.candidate.user_id))
    return ranked


def _experience_fit(leg: LegSnapshot, candidate: CandidateSnapshot) -> float:
    if not leg.min_experience_level:
        return 1.0
    return 1.0 if gates.evaluate_experience(candidate.experience_level, leg.min_experience_level).passed else 0.0


def _risk_fit(leg: LegSnapshot, candidate: CandidateSnapshot) -> float:
    if not leg.risk_level:
        return 1.0
    return 1.0 if gates.evaluate_risk(candidate.risk_comfort, leg.risk_level).passed else 0.0
