# engine/ai/prompts.py
"""
Prompts de scoring.

Chaque builder retourne un couple (rubric, candidate_input) :
  rubric          : ce que l'owner a configuré (jamais inventé par l'IA)
  candidate_input : texte littéral fourni par le marin

Le contrat de sortie est toujours le même : {"score": 0..10, "rationale": "..."}.
"""
from __future__ import annotations
from datetime import date
from typing import Dict, List, Optional, Tuple


SYSTEM_PROMPT = (
    "You are an impartial sailing crew assessor. "
    "Score ONLY the candidate input against the rubric. Never assume facts "
    "that are not written in the candidate input. "
    'Respond with ONLY a JSON object: {"score": <number 0-10>, "rationale": "<one or two sentences>"}.'
)


def skill_prompt(skill_name: str, criteria: str, self_description: str) -> Tuple[str, str]:
    rubric = (
        f"Skill area: {skill_name}\n"
        f"Qualification criteria set by the skipper:\n{criteria}\n\n"
        "10 = fully meets the criteria, 0 = no evidence at all."
    )
    candidate = f"Candidate self-description for {skill_name}:\n{self_description}"
    return rubric, candidate


def question_prompt(question: str, criteria: str, answer: str) -> Tuple[str, str]:
    rubric = (
        f"Question asked by the skipper:\n{question}\n\n"
        f"Grading rubric:\n{criteria}"
    )
    candidate = f"Candidate answer:\n{answer}"
    return rubric, candidate


def passport_prompt(profile_name: str, today: date) -> Tuple[str, str]:
    rubric = (
        "The attached image is an identity document (passport).\n"
        f"Today is {today.isoformat()}.\n"
        "Check that (a) the document is a passport, (b) its expiry date is after today, "
        "(c) the holder name matches the profile name below (ignore case, accents and "
        "middle-name ordering).\n"
        "score = your confidence (0-10) that ALL three checks hold. "
        "An expired or unreadable document scores 0."
    )
    candidate = f"Profile name: {profile_name}"
    return rubric, candidate


def photo_match_prompt() -> Tuple[str, str]:
    rubric = (
        "Two images are attached: first the passport, second a freshly captured facial photo.\n"
        "score = your confidence (0-10) that both show the same person. "
        "If either face is not clearly visible, score 0."
    )
    return rubric, "Compare the two faces."


def match_refine_prompt(leg: Dict, crew: Dict) -> Tuple[str, str]:
    """Raffinement IA du batch de matching : le score 0..10 est ensuite ×10."""
    skills: List[str] = leg.get("skills") or []
    rubric = (
        f"Sailing leg: {leg.get('name')}\n"
        f"Risk level: {leg.get('risk_level') or 'unspecified'}\n"
        f"Minimum experience level (1-4): {leg.get('min_experience_level') or 'unspecified'}\n"
        f"Wanted skills: {', '.join(skills) if skills else 'none listed'}\n"
        f"Dates: {leg.get('start_date')} to {leg.get('end_date')}\n\n"
        "score = how good a fit (0-10) this crew member is for the leg."
    )
    crew_skills = "\n".join(
        f"- {s.get('skill_name')}: {s.get('description') or ''}" for s in crew.get("skills") or []
    )
    candidate = (
        f"Experience level: {crew.get('experience_level')}\n"
        f"Comfortable with: {', '.join(crew.get('risk_comfort') or [])}\n"
        f"Skills:\n{crew_skills or '- none'}"
    )
    return rubric, candidate


def build_messages(rubric: str, candidate_input: str, images: Optional[List[str]] = None) -> List[Dict]:
    """Format chat/completions compatible OpenAI. images = data URLs."""
    if images:
        user_content: object = [{"type": "text", "text": candidate_input}] + [
            {"type": "image_url", "image_url": {"url": url}} for url in images
        ]
    else:
        user_content = candidate_input
    return [
        {"role": "system", "content": f"{SYSTEM_PROMPT}\n\n{rubric}"},
        {"role": "user", "content": user_content},
    ]
