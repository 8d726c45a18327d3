# sailcrew/shared/models/Registration.py
"""
Modèles d'inscription.

Registration       : racine d'agrégat candidat ↔ leg
RegistrationAnswer : une réponse littérale par exigence (+ score après évaluation)
AssessmentRun      : trace d'audit d'un passage du pipeline (insert-only)

Cycle : PENDING_APPROVAL → APPROVED (pipeline ou humain)
        PENDING_APPROVAL → NOT_APPROVED (humain uniquement)
        PENDING_APPROVAL / APPROVED → CANCELLED (marin)
Aucune résurrection depuis CANCELLED ou NOT_APPROVED.

Single-writer : assessment_started_at est posé par un UPDATE conditionnel
(WHERE assessment_started_at IS NULL) : un seul passage du pipeline possible.
"""
from sqlalchemy import (
    Column, Integer, String, Boolean, Float, DateTime, JSON, Text,
    ForeignKey, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from sailcrew.core.database import Base, PgEnum
from sailcrew.shared.enums import RegistrationStatus, RegistrationSource, AssessmentStage


class Registration(Base):
    __tablename__ = "registrations"

    id      = Column(Integer, primary_key=True, index=True)
    leg_id  = Column(Integer, ForeignKey("legs.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    status        = Column(PgEnum(RegistrationStatus), default=RegistrationStatus.PENDING_APPROVAL, nullable=False)
    source        = Column(PgEnum(RegistrationSource), default=RegistrationSource.CREW, nullable=False)
    auto_approved = Column(Boolean, default=False, nullable=False, index=True)

    # ── Champs terminaux (écrits par le pipeline uniquement) ──
    aggregate_score = Column(Float, nullable=True)
    reasoning       = Column(Text, nullable=True)
    stopped_at      = Column(PgEnum(AssessmentStage), nullable=True)

    assessment_started_at = Column(DateTime(timezone=True), nullable=True)
    assessed_at           = Column(DateTime(timezone=True), nullable=True)

    # ── Décisions humaines ───────────────────────────────────
    owner_decided_at  = Column(DateTime(timezone=True), nullable=True)
    owner_note        = Column(String, nullable=True)
    crew_cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("leg_id", "user_id", name="uq_registration_leg_user"),
    )

    leg     = relationship("Leg", back_populates="registrations")
    answers = relationship("RegistrationAnswer", back_populates="registration", cascade="all, delete-orphan")
    runs    = relationship("AssessmentRun", back_populates="registration", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Registration id={self.id} leg={self.leg_id} user={self.user_id} status={self.status}>"


class RegistrationAnswer(Base):
    __tablename__ = "registration_answers"

    id              = Column(Integer, primary_key=True, index=True)
    registration_id = Column(Integer, ForeignKey("registrations.id", ondelete="CASCADE"), nullable=False, index=True)
    requirement_id  = Column(Integer, ForeignKey("voyage_requirements.id", ondelete="CASCADE"), nullable=False, index=True)

    # Valeur littérale saisie par le marin
    answer_text          = Column(Text, nullable=True)
    passport_document_id = Column(Integer, ForeignKey("documents.id"), nullable=True)

    # Résultat d'évaluation
    score     = Column(Float, nullable=True)   # 0..10
    reasoning = Column(Text, nullable=True)
    passed    = Column(Boolean, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("registration_id", "requirement_id", name="uq_answer_registration_requirement"),
        CheckConstraint("score IS NULL OR (score >= 0 AND score <= 10)", name="ck_answer_score"),
    )

    registration = relationship("Registration", back_populates="answers")


class AssessmentRun(Base):
    """Trace d'audit. Jamais mise à jour après insertion."""
    __tablename__ = "assessment_runs"

    id              = Column(Integer, primary_key=True, index=True)
    registration_id = Column(Integer, ForeignKey("registrations.id", ondelete="CASCADE"), nullable=False, index=True)

    started_at  = Column(DateTime(timezone=True), nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=False)
    outcome     = Column(PgEnum(RegistrationStatus), nullable=False)
    stopped_at  = Column(PgEnum(AssessmentStage), nullable=True)
    ai_calls    = Column(Integer, default=0, nullable=False)
    trace       = Column(JSON, nullable=False, default=list)

    registration = relationship("Registration", back_populates="runs")
