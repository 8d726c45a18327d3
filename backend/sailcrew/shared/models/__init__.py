# sailcrew/shared/models/__init__.py
"""
Point d'entrée unique pour tous les modèles SQLAlchemy.

TOUJOURS importer les modèles depuis ce fichier :
  from sailcrew.shared.models import User, Voyage, Registration, ...

→ Garantit que tous les modèles sont enregistrés dans Base.metadata
  avant la création des tables (Alembic, create_all).
"""

from sailcrew.shared.models.User         import User, CrewProfile
from sailcrew.shared.models.Voyage       import Voyage, Leg, VoyageRequirement
from sailcrew.shared.models.Document     import Document, DocumentAccessGrant, DocumentAccessLog
from sailcrew.shared.models.Registration import Registration, RegistrationAnswer, AssessmentRun
from sailcrew.shared.models.Match        import CrewLegMatch, AIUsageBudget
from sailcrew.shared.models.Notification import Notification

__all__ = [
    # User
    "User", "CrewProfile",
    # Voyage
    "Voyage", "Leg", "VoyageRequirement",
    # Documents
    "Document", "DocumentAccessGrant", "DocumentAccessLog",
    # Registration
    "Registration", "RegistrationAnswer", "AssessmentRun",
    # Matching
    "CrewLegMatch", "AIUsageBudget",
    # Notifications
    "Notification",
]
