# sailcrew/shared/models/User.py
"""
Modèles liés aux utilisateurs.

Stratégie de découpage User :
- User        : données compte (auth gérée par le service externe)
- CrewProfile : interface de lecture du profil marin consommée par le
                pipeline d'évaluation et le batch de matching

Note sur les champs texte (skills[].description) :
  Texte littéral saisi par le marin. Jamais généré ni complété par l'IA :
  c'est exactement ce qui est envoyé au scoring.
"""
from sqlalchemy import (
    Column, Integer, String, Boolean, Float,
    DateTime, Date, JSON, ForeignKey,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from sailcrew.core.database import Base, PgEnum
from sailcrew.shared.enums import UserRole


class User(Base):
    __tablename__ = "users"

    id    = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name  = Column(String, nullable=False)

    role      = Column(PgEnum(UserRole), default=UserRole.CREW, nullable=False, index=True)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # ── Relations ────────────────────────────────────────────
    crew_profile = relationship(
        "CrewProfile", back_populates="user",
        uselist=False, cascade="all, delete-orphan",
    )
    voyages = relationship("Voyage", back_populates="owner", cascade="all, delete-orphan")
    documents = relationship("Document", back_populates="owner", cascade="all, delete-orphan")

    @property
    def is_crew(self) -> bool:
        return self.role == UserRole.CREW

    def __repr__(self):
        return f"<User id={self.id} email={self.email} role={self.role}>"


class CrewProfile(Base):
    """
    Profil marin.

    risk_comfort : liste de RiskLevel acceptés, ex. ["Coastal sailing", "Offshore sailing"]
    skills       : [{"skill_name": "navigation", "description": "texte libre du marin"}]
    Consentements : ai_processing_consent conditionne TOUT appel IA,
                    matching_consent conditionne l'entrée dans le batch proactif.
    """
    __tablename__ = "crew_profiles"

    id      = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    full_name        = Column(String, nullable=True)
    experience_level = Column(Integer, nullable=True)      # 1..4 (ExperienceLevel)
    risk_comfort     = Column(JSON, nullable=False, default=list)
    skills           = Column(JSON, nullable=False, default=list)

    ai_processing_consent = Column(Boolean, default=False, nullable=False)
    matching_consent      = Column(Boolean, default=False, nullable=False, index=True)

    home_port = Column(String, nullable=True)
    latitude  = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    availability_start = Column(Date, nullable=True)
    availability_end   = Column(Date, nullable=True)

    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="crew_profile")

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        return self.user.name if self.user else ""

    def __repr__(self):
        return f"<CrewProfile id={self.id} user_id={self.user_id} level={self.experience_level}>"
