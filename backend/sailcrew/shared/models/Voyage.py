# sailcrew/shared/models/Voyage.py
"""
Modèles voyage / leg / exigences.

Voyage            : un projet de navigation publié par un owner
Leg               : un segment daté avec sa propre capacité d'équipage
VoyageRequirement : une exigence configurée par l'owner (tagged par kind)

Immutabilité : une exigence n'est plus modifiable dès qu'une inscription
du voyage a été évaluée (voir modules/voyage/service.py).
"""
from sqlalchemy import (
    Column, Integer, String, Boolean, Float, DateTime, JSON, Text,
    ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from sailcrew.core.database import Base, PgEnum
from sailcrew.shared.enums import VoyageState, RequirementKind, RiskLevel


class Voyage(Base):
    __tablename__ = "voyages"

    id       = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name  = Column(String, nullable=False)
    state = Column(PgEnum(VoyageState), default=VoyageState.DRAFT, nullable=False, index=True)

    # ── Auto-approbation ─────────────────────────────────────
    auto_approval_enabled = Column(Boolean, default=False, nullable=False)
    passing_score         = Column(Float, default=7.0, nullable=False)   # 0..10, agrégat skills

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("passing_score >= 0 AND passing_score <= 10", name="ck_voyage_passing_score"),
    )

    owner        = relationship("User", back_populates="voyages")
    legs         = relationship("Leg", back_populates="voyage", cascade="all, delete-orphan")
    requirements = relationship(
        "VoyageRequirement", back_populates="voyage",
        cascade="all, delete-orphan", order_by="VoyageRequirement.order",
    )

    def __repr__(self):
        return f"<Voyage id={self.id} name={self.name} state={self.state}>"


class Leg(Base):
    __tablename__ = "legs"

    id        = Column(Integer, primary_key=True, index=True)
    voyage_id = Column(Integer, ForeignKey("voyages.id", ondelete="CASCADE"), nullable=False, index=True)

    name        = Column(String, nullable=False)
    start_date  = Column(DateTime(timezone=True), nullable=False)
    end_date    = Column(DateTime(timezone=True), nullable=False)
    crew_needed = Column(Integer, default=1, nullable=False)

    # Utilisés par le batch de matching (pré-filtre + composite)
    risk_level           = Column(PgEnum(RiskLevel), nullable=True)
    min_experience_level = Column(Integer, nullable=True)
    skills               = Column(JSON, nullable=False, default=list)   # noms canoniques
    start_latitude       = Column(Float, nullable=True)
    start_longitude      = Column(Float, nullable=True)

    voyage        = relationship("Voyage", back_populates="legs")
    registrations = relationship("Registration", back_populates="leg", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Leg id={self.id} voyage={self.voyage_id} start={self.start_date}>"


class VoyageRequirement(Base):
    """
    Une ligne par exigence. Les colonnes utiles dépendent du kind :
        risk_level       → required_risk_level
        experience_level → min_experience_level
        skill            → skill_name, qualification_criteria, weight
        question         → question_text, qualification_criteria
        passport         → requires_photo_validation, pass_confidence_score
    La conversion en variante typée est faite par engine/assessment/requirements.py.
    """
    __tablename__ = "voyage_requirements"

    id        = Column(Integer, primary_key=True, index=True)
    voyage_id = Column(Integer, ForeignKey("voyages.id", ondelete="CASCADE"), nullable=False, index=True)

    kind        = Column(PgEnum(RequirementKind), nullable=False)
    order       = Column(Integer, default=0, nullable=False)
    is_required = Column(Boolean, default=True, nullable=False)

    required_risk_level  = Column(PgEnum(RiskLevel), nullable=True)
    min_experience_level = Column(Integer, nullable=True)

    skill_name             = Column(String, nullable=True)
    question_text          = Column(Text, nullable=True)
    qualification_criteria = Column(Text, nullable=True)
    weight                 = Column(Integer, default=5, nullable=False)

    requires_photo_validation = Column(Boolean, default=False, nullable=False)
    pass_confidence_score     = Column(Integer, default=7, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("weight >= 0 AND weight <= 10", name="ck_requirement_weight"),
        CheckConstraint(
            "pass_confidence_score >= 0 AND pass_confidence_score <= 10",
            name="ck_requirement_pass_confidence",
        ),
    )

    voyage = relationship("Voyage", back_populates="requirements")

    def __repr__(self):
        return f"<VoyageRequirement id={self.id} voyage={self.voyage_id} kind={self.kind}>"
