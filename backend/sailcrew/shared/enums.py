# sailcrew/shared/enums.py
"""
Toutes les énumérations du projet SailCrew.

Source unique de vérité pour les statuts, rôles et types.
Importé par les modèles, schemas, services et engine.
"""

from enum import Enum, IntEnum


class UserRole(str, Enum):
    CREW  = "crew"
    OWNER = "owner"     # Skipper / propriétaire du bateau
    ADMIN = "admin"


class RiskLevel(str, Enum):
    COASTAL  = "Coastal sailing"
    OFFSHORE = "Offshore sailing"
    EXTREME  = "Extreme sailing"


class ExperienceLevel(IntEnum):
    BEGINNER         = 1
    COMPETENT_CREW   = 2
    COASTAL_SKIPPER  = 3
    OFFSHORE_SKIPPER = 4


class VoyageState(str, Enum):
    DRAFT     = "draft"
    PUBLISHED = "published"
    ARCHIVED  = "archived"


class RequirementKind(str, Enum):
    RISK_LEVEL       = "risk_level"
    EXPERIENCE_LEVEL = "experience_level"
    SKILL            = "skill"
    PASSPORT         = "passport"
    QUESTION         = "question"


class RegistrationStatus(str, Enum):
    PENDING_APPROVAL = "Pending approval"
    APPROVED         = "Approved"
    NOT_APPROVED     = "Not approved"   # Décision humaine uniquement
    CANCELLED        = "Cancelled"


class RegistrationSource(str, Enum):
    CREW  = "crew"     # Candidature spontanée
    MATCH = "match"    # Acceptation mutuelle d'un CrewLegMatch


class AssessmentStage(str, Enum):
    SUBMITTED       = "Submitted"
    RISK_GATE       = "RiskGate"
    EXPERIENCE_GATE = "ExperienceGate"
    CONSENT_CHECK   = "ConsentCheck"
    PASSPORT_GATE   = "PassportGate"
    SKILL_SCORING   = "SkillScoring"
    DECISION        = "Decision"


class MatchStatus(str, Enum):
    PENDING  = "pending"
    ACCEPTED = "accepted"
    SKIPPED  = "skipped"
    DECLINED = "declined"


class GrantPurpose(str, Enum):
    JOURNEY_REGISTRATION  = "journey_registration"
    IDENTITY_VERIFICATION = "identity_verification"
    INSURANCE_PROOF       = "insurance_proof"
    CERTIFICATION_CHECK   = "certification_check"
    OTHER                 = "other"


class AccessType(str, Enum):
    VIEW         = "view"
    GRANT_CHECK  = "grant_check"
    GRANT_CREATE = "grant_create"
    GRANT_REVOKE = "grant_revoke"


class NotificationKind(str, Enum):
    REGISTRATION_APPROVED   = "registration_approved"
    REGISTRATION_PENDING    = "registration_pending"     # Crew : revue manuelle en cours
    REGISTRATION_GATE_FAILED = "registration_gate_failed" # Crew : critère déterministe non rempli
    REGISTRATION_DENIED     = "registration_denied"
    NEW_REGISTRATION        = "new_registration"          # Owner : auto-approbation désactivée
    AI_REVIEW_NEEDED        = "ai_review_needed"          # Owner : revue manuelle requise
    AI_AUTO_APPROVED        = "ai_auto_approved"          # Owner : info
    MATCH_SUGGESTED         = "match_suggested"
