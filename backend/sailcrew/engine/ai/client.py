# engine/ai/client.py
"""
AIScoringClient : adaptateur sans état vers les fournisseurs LLM.

Chaîne de fallback :
    providers triés par priority, chacun essayé (1 + retries) fois avec le
    même timeout. Le premier qui renvoie une sortie conforme gagne.

Contrat de sortie (ScoreResult) :
    {"score": 0..10, "rationale": str non vide}
    Toute réponse hors contrat (JSON absent, champ manquant, score hors
    bornes) compte comme un échec du fournisseur, jamais comme un score 0.
    Si tous échouent → ProviderUnavailable.

Consentement :
    score() exige consent_asserted=True. Sinon ConsentViolation : c'est un
    bug de l'appelant, l'appel HTTP n'est jamais émis.
"""
from __future__ import annotations
import base64
import json
import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError

from sailcrew.core.config import AIProviderSettings, settings
from sailcrew.engine.ai.prompts import build_messages
from sailcrew.shared.errors import ConsentViolation, ProviderUnavailable

logger = structlog.get_logger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class ScoreResult(BaseModel):
    score:     float = Field(ge=0, le=10)
    rationale: str = Field(min_length=1)
    provider:  Optional[str] = None


@dataclass
class ProviderAttempt:
    provider: str
    error:    str


@dataclass
class AIScoringClient:
    """
    providers : chaîne ordonnée (défaut : settings.provider_chain())
    api_keys  : surcharge des clés (tests) : sinon lues dans l'environnement
    transport : transport httpx injectable (httpx.MockTransport en test)
    """
    providers: List[AIProviderSettings] = field(default_factory=settings.provider_chain)
    timeout:   float = settings.AI_TIMEOUT_SECONDS
    retries:   int = settings.AI_RETRIES_PER_PROVIDER
    api_keys:  Optional[Mapping[str, str]] = None
    transport: Optional[httpx.AsyncBaseTransport] = None

    def __post_init__(self):
        self.providers = sorted(self.providers, key=lambda p: p.priority)

    # ── API publique ──────────────────────────────────────────────────────────

    async def score(
        self,
        rubric: str,
        candidate_input: str,
        *,
        consent_asserted: bool,
        images: Sequence[Tuple[bytes, str]] = (),
    ) -> ScoreResult:
        """
        images : [(contenu, mime_type)] : envoyés en data URL, jamais loggés.
        """
        if consent_asserted is not True:
            raise ConsentViolation("AI scoring requested without asserted ai_processing_consent")

        messages = build_messages(rubric, candidate_input, [_data_url(b, m) for b, m in images])
        attempts: List[ProviderAttempt] = []

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as http:
            for provider in self.providers:
                key = self._key_for(provider)
                if not key:
                    attempts.append(ProviderAttempt(provider.name, "missing api key"))
                    continue

                for attempt in range(1 + max(self.retries, 0)):
                    try:
                        result = await self._call(http, provider, key, messages)
                    except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
                        # ValidationError / JSONDecodeError sont des ValueError
                        attempts.append(ProviderAttempt(provider.name, _short(e)))
                        logger.warning(
                            "ai.provider_failed",
                            provider=provider.name, attempt=attempt + 1, error=_short(e),
                        )
                        continue
                    logger.info("ai.scored", provider=provider.name, score=result.score)
                    return result

        raise ProviderUnavailable(
            "all AI providers failed",
            attempts=[f"{a.provider}: {a.error}" for a in attempts],
        )

    # ── Interne ───────────────────────────────────────────────────────────────

    def _key_for(self, provider: AIProviderSettings) -> Optional[str]:
        if self.api_keys is not None:
            return self.api_keys.get(provider.name)
        return os.environ.get(provider.api_key_env)

    async def _call(
        self,
        http: httpx.AsyncClient,
        provider: AIProviderSettings,
        key: str,
        messages: List[Dict],
    ) -> ScoreResult:
        payload = {
            "model":       provider.model,
            "messages":    messages,
            "temperature": settings.AI_TEMPERATURE,
            "max_tokens":  settings.AI_MAX_TOKENS,
        }
        headers = {"Authorization": f"Bearer {key}", "Content-Type": "application/json"}
        response = await http.post(provider.endpoint, headers=headers, json=payload)
        response.raise_for_status()

        content = response.json()["choices"][0]["message"]["content"] or ""
        return parse_score(content, provider.name)


def parse_score(content: str, provider_name: Optional[str] = None) -> ScoreResult:
    """
    Extrait le premier objet JSON du texte (les modèles l'entourent parfois
    de ```json```) et le valide. Lève ValueError si hors contrat.
    """
    found = _JSON_OBJECT.search(content)
    if not found:
        raise ValueError("no JSON object in AI response")
    data = json.loads(found.group(0))
    if not isinstance(data, dict):
        raise ValueError("AI response is not a JSON object")
    try:
        return ScoreResult(score=data.get("score"), rationale=data.get("rationale"), provider=provider_name)
    except ValidationError as e:
        raise ValueError(f"AI response out of contract: {e.error_count()} error(s)") from e


def _data_url(content: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"


def _short(e: Exception) -> str:
    return f"{type(e).__name__}: {str(e)[:200]}"
