# tests/engine/matching/test_composite.py
"""
Tests unitaires pour engine.matching.composite

Couverture :
    haversine_km()      → distance connue (Paris → Londres ≈ 344 km), vectorisé
    skills_overlap()    → fraction des skills du leg, leg sans skill → 1.0
    date_overlap()      → couverture partielle, neutre si non déclarée
    location_affinity() → décroissance linéaire, neutre si inconnu
    prefilter()         → consentement, owner, exclus, gates risque / expérience
    shortlist()         → limite appliquée aux mieux classés, pas aux premiers reçus
    rank()              → tri décroissant, égalité départagée par user_id,
                          poids tous nuls → ValueError
"""
import numpy as np
import pytest
from datetime import date, datetime, timezone

from sailcrew.engine.matching.composite import (
    CandidateSnapshot, LegSnapshot, date_overlap, haversine_km,
    location_affinity, prefilter, prefilter_reason, rank, shortlist, skills_overlap,
)
from sailcrew.shared.enums import RiskLevel

pytestmark = pytest.mark.engine

WEIGHTS = {"skills": 0.3, "experience": 0.2, "risk": 0.2, "dates": 0.2, "location": 0.1}


def _leg(**kwargs) -> LegSnapshot:
    defaults = dict(
        id=100, voyage_id=10, owner_id=2, name="Leg",
        start_date=datetime(2027, 5, 1, tzinfo=timezone.utc),
        end_date=datetime(2027, 5, 10, tzinfo=timezone.utc),
        risk_level=RiskLevel.OFFSHORE, min_experience_level=2,
        skills=("navigation", "cooking"), latitude=46.16, longitude=-1.15,
    )
    defaults.update(kwargs)
    return LegSnapshot(**defaults)


def _candidate(user_id=1, **kwargs) -> CandidateSnapshot:
    defaults = dict(
        user_id=user_id, experience_level=3,
        risk_comfort=("Coastal sailing", "Offshore sailing"),
        skills=({"skill_name": "navigation", "description": "x"},),
        latitude=46.16, longitude=-1.15,
        matching_consent=True, ai_processing_consent=True,
    )
    defaults.update(kwargs)
    return CandidateSnapshot(**defaults)


# ── Composantes ───────────────────────────────────────────────────────────────

def test_haversine_paris_londres():
    assert haversine_km(48.8566, 2.3522, 51.5074, -0.1278) == pytest.approx(344, abs=2)


def test_haversine_vectorise():
    d = haversine_km(0.0, 0.0, np.array([0.0, 0.0]), np.array([0.0, 1.0]))
    assert d[0] == pytest.approx(0.0)
    assert d[1] == pytest.approx(111.19, abs=0.1)


def test_skills_overlap():
    assert skills_overlap(["Navigation", "cooking"], [{"skill_name": "navigation"}]) == 0.5
    assert skills_overlap([], [{"skill_name": "navigation"}]) == 1.0


def test_date_overlap_partiel():
    leg = _leg()
    cand = _candidate(availability_start=date(2027, 5, 6), availability_end=date(2027, 6, 1))
    assert date_overlap(leg, cand) == pytest.approx(0.5)


def test_date_overlap_neutre_et_disjoint():
    leg = _leg()
    assert date_overlap(leg, _candidate()) == 0.5
    disjoint = _candidate(availability_start=date(2027, 6, 1), availability_end=date(2027, 6, 30))
    assert date_overlap(leg, disjoint) == 0.0


def test_location_affinity():
    leg = _leg(latitude=0.0, longitude=0.0)
    cands = [
        _candidate(1, latitude=0.0, longitude=0.0),
        _candidate(2, latitude=None, longitude=None),
        _candidate(3, latitude=0.0, longitude=10.0),   # ≈ 1112 km
    ]
    out = location_affinity(leg, cands, radius_km=500)
    assert out[0] == pytest.approx(1.0)
    assert out[1] == 0.5
    assert out[2] == 0.0


# ── Pré-filtre ────────────────────────────────────────────────────────────────

class TestPrefilter:
    def test_motifs(self):
        leg = _leg()
        assert prefilter_reason(leg, _candidate(matching_consent=False), set()) == "no_matching_consent"
        assert prefilter_reason(leg, _candidate(user_id=2), set()) == "owner"
        assert prefilter_reason(leg, _candidate(user_id=5), {5}) == "already_registered_or_declined"
        assert prefilter_reason(leg, _candidate(risk_comfort=("Coastal sailing",)), set()) == "risk"
        assert prefilter_reason(leg, _candidate(experience_level=1), set()) == "experience"
        assert prefilter_reason(leg, _candidate(), set()) is None

    def test_garde_tous_les_eligibles(self):
        kept = prefilter(_leg(), [_candidate(i) for i in range(3, 10)], {5})
        assert [c.user_id for c in kept] == [3, 4, 6, 7, 8, 9]


# ── shortlist() ───────────────────────────────────────────────────────────────

def test_shortlist_limite_appliquee_apres_classement():
    weak = [_candidate(i, skills=()) for i in range(3, 10)]
    strong = _candidate(10, skills=({"skill_name": "navigation"}, {"skill_name": "cooking"}))
    kept = shortlist(_leg(), weak + [strong], set(), limit=3, weights=WEIGHTS, radius_km=500)
    assert [r.candidate.user_id for r in kept] == [10, 3, 4]
    assert kept[0].composite > kept[1].composite


def test_shortlist_sans_limite():
    kept = shortlist(_leg(), [_candidate(i) for i in range(3, 6)], {4}, weights=WEIGHTS, radius_km=500)
    assert sorted(r.candidate.user_id for r in kept) == [3, 5]


# ── rank() ────────────────────────────────────────────────────────────────────

def test_rank_ordre_decroissant():
    leg = _leg()
    strong = _candidate(1, skills=({"skill_name": "navigation"}, {"skill_name": "cooking"}))
    weak = _candidate(2, skills=())
    ranked = rank(leg, [weak, strong], WEIGHTS, 500)
    assert [r.candidate.user_id for r in ranked] == [1, 2]
    assert 0 <= ranked[1].composite <= ranked[0].composite <= 100
    assert set(ranked[0].components) == {"skills", "experience", "risk", "dates", "location"}


def test_rank_composite_calcule():
    # skills 1.0, experience 1.0, risk 1.0, dates 0.5 (neutre), location 1.0
    leg = _leg()
    cand = _candidate(skills=({"skill_name": "navigation"}, {"skill_name": "cooking"}))
    ranked = rank(leg, [cand], WEIGHTS, 500)
    assert ranked[0].composite == pytest.approx(90.0)


def test_rank_egalite_par_user_id():
    ranked = rank(_leg(), [_candidate(9), _candidate(4)], WEIGHTS, 500)
    assert [r.candidate.user_id for r in ranked] == [4, 9]


def test_rank_poids_nuls():
    with pytest.raises(ValueError):
        rank(_leg(), [_candidate()], {k: 0 for k in WEIGHTS}, 500)


def test_rank_vide():
    assert rank(_leg(), [], WEIGHTS, 500) == []
