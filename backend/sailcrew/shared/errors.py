# sailcrew/shared/errors.py
"""
Taxonomie d'erreurs du cœur d'évaluation.

Aucune de ces erreurs n'atteint l'utilisateur final : le pipeline les
convertit toutes en arrêt PendingApproval avec une explication, sauf
ConsentViolation (erreur de programmation de l'appelant, jamais rattrapée).
"""
from typing import Optional


class GateFailed(Exception):
    """Incompatibilité déterministe (risque / expérience). Corrigeable via le profil."""

    def __init__(self, gate: str, reason: str):
        super().__init__(reason)
        self.gate = gate
        self.reason = reason


class GrantError(Exception):
    """Précondition de sécurité sur un document : distincte d'un échec de scoring."""

    def __init__(self, reason: str, document_id: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.document_id = document_id


class GrantMissing(GrantError):
    pass


class GrantExpired(GrantError):
    pass


class ProviderUnavailable(Exception):
    """Tous les fournisseurs IA ont échoué (timeout, HTTP, réponse hors contrat)."""

    def __init__(self, reason: str, attempts: Optional[list] = None):
        super().__init__(reason)
        self.reason = reason
        self.attempts = attempts or []


class InvalidRequirementConfig(Exception):
    """Exigence mal configurée par l'owner (ex : rubrique absente)."""

    def __init__(self, requirement_id, reason: str):
        super().__init__(f"requirement {requirement_id}: {reason}")
        self.requirement_id = requirement_id
        self.reason = reason


class ConsentViolation(Exception):
    """Appel IA tenté sans consentement affirmé. Bug appelant."""


class AssessmentAlreadyRun(Exception):
    """Une évaluation est déjà en cours ou terminée pour cette inscription."""


class InvalidTransition(Exception):
    """Transition de statut interdite (pas de résurrection)."""
