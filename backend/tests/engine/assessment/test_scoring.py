# tests/engine/assessment/test_scoring.py
"""
Tests unitaires pour engine.assessment.scoring

Couverture :
    weighted_aggregate() → moyenne pondérée, poids total nul → None
    SkillAndQuestionAssessor.assess() :
        - {(w=10, s=8), (w=5, s=4)} → 6.0 : passe à 6, échoue à 7
        - Skill sans auto-description → 0, aucun appel IA
        - Rubrique absente → needs_review sur CETTE exigence uniquement
        - ProviderUnavailable → arrêt, reason_code provider_unavailable
        - Questions consultatives par défaut, comptées si questions_count
"""
import pytest

from sailcrew.engine.assessment.requirements import QuestionRequirement, SkillRequirement
from sailcrew.engine.assessment.scoring import SkillAndQuestionAssessor, skills_by_name, weighted_aggregate
from tests.conftest import FakeAI, unavailable

pytestmark = pytest.mark.engine

PROFILE_SKILLS = [
    {"skill_name": "Navigation", "description": "Night passages, 4000 nm."},
    {"skill_name": "cooking", "description": "Galley chef on a 3-week passage."},
]


def _skill(id=1, name="navigation", weight=5, criteria="Rubric"):
    return SkillRequirement(id, name, criteria, weight)


def _question(id=10, criteria="Rubric", is_required=True):
    return QuestionRequirement(id, "Why this leg?", criteria, is_required)


async def _assess(ai, skills=(), questions=(), answers=None, passing_score=6.0, **kwargs):
    assessor = SkillAndQuestionAssessor(ai, **kwargs)
    return await assessor.assess(
        list(skills), list(questions),
        profile_skills=PROFILE_SKILLS,
        answers=answers or {},
        passing_score=passing_score,
        consent_asserted=True,
    )


# ── weighted_aggregate ────────────────────────────────────────────────────────

def test_aggregate_exemple_de_reference():
    assert weighted_aggregate([(10, 8), (5, 4)]) == 6.0


def test_aggregate_poids_nul():
    assert weighted_aggregate([(0, 9), (0, 3)]) is None
    assert weighted_aggregate([]) is None


def test_skills_by_name_normalise():
    assert skills_by_name(PROFILE_SKILLS)["navigation"] == "Night passages, 4000 nm."


# ── Seuil ─────────────────────────────────────────────────────────────────────

class TestSeuil:
    @pytest.mark.asyncio
    async def test_passe_a_6(self):
        ai = FakeAI(8.0, 4.0)
        result = await _assess(ai, [_skill(1, "navigation", 10), _skill(2, "cooking", 5)], passing_score=6)
        assert result.aggregate == 6.0
        assert result.passed is True
        assert result.ai_calls == 2

    @pytest.mark.asyncio
    async def test_echoue_a_7(self):
        ai = FakeAI(8.0, 4.0)
        result = await _assess(ai, [_skill(1, "navigation", 10), _skill(2, "cooking", 5)], passing_score=7)
        assert result.aggregate == 6.0
        assert result.passed is False
        assert result.reason_code == "below_threshold"


# ── Cas particuliers ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_skill_sans_description_score_zero_sans_appel():
    ai = FakeAI()
    result = await _assess(ai, [_skill(1, "diesel mechanics", 5)])
    assert ai.calls == []
    assert result.scores[0].score == 0.0
    assert result.aggregate == 0.0
    assert result.passed is False


@pytest.mark.asyncio
async def test_rubrique_absente_isolee():
    ai = FakeAI(9.0)
    result = await _assess(ai, [_skill(1, "navigation", 5), _skill(2, "cooking", 5, criteria=None)])
    assert len(ai.calls) == 1
    assert result.passed is False
    assert result.reason_code == "misconfigured"
    flagged = [s for s in result.scores if s.needs_review]
    assert [s.requirement_id for s in flagged] == [2]
    # La skill bien configurée a quand même été scorée
    assert result.aggregate == 9.0


@pytest.mark.asyncio
async def test_fournisseur_indisponible_arrete_le_scoring():
    ai = FakeAI(unavailable(), 9.0)
    result = await _assess(ai, [_skill(1, "navigation"), _skill(2, "cooking")])
    assert result.passed is False
    assert result.reason_code == "provider_unavailable"
    assert len(ai.calls) == 1


@pytest.mark.asyncio
async def test_aucun_poids_revue_manuelle():
    ai = FakeAI(9.0)
    result = await _assess(ai, [_skill(1, "navigation", weight=0)])
    assert result.aggregate is None
    assert result.reason_code == "no_weight"


# ── Questions ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_questions_consultatives_par_defaut():
    ai = FakeAI(8.0, 1.0)
    result = await _assess(
        ai, [_skill(1, "navigation", 5)], [_question(10)],
        answers={10: "I want to cross the Atlantic."},
        questions_count=False,
    )
    assert result.aggregate == 8.0
    assert result.passed is True
    assert result.scores[1].score == 1.0


@pytest.mark.asyncio
async def test_questions_comptees_si_active():
    ai = FakeAI(8.0, 2.0)
    result = await _assess(
        ai, [_skill(1, "navigation", 5)], [_question(10)],
        answers={10: "I want to cross the Atlantic."},
        questions_count=True, question_weight=5,
    )
    assert result.aggregate == 5.0
    assert result.passed is False


@pytest.mark.asyncio
async def test_question_sans_reponse_non_scoree():
    ai = FakeAI(8.0)
    result = await _assess(ai, [_skill(1)], [_question(10, is_required=False)], answers={10: "  "})
    assert len(ai.calls) == 1
    assert result.scores[1].score is None
    assert result.scores[1].reasoning == "Not answered"
