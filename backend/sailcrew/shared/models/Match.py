# sailcrew/shared/models/Match.py
"""
Modèles du matching proactif.

CrewLegMatch  : une paire (marin, leg) proposée par le batch : unique par paire,
                re-jouer le batch ne crée jamais de doublon (ON CONFLICT DO NOTHING)
AIUsageBudget : compteur d'appels IA par jour UTC, incrémenté atomiquement
"""
from sqlalchemy import (
    Column, Integer, String, Float, Date, DateTime, Text,
    ForeignKey, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from sailcrew.core.database import Base, PgEnum
from sailcrew.shared.enums import MatchStatus


class CrewLegMatch(Base):
    __tablename__ = "crew_leg_matches"

    id      = Column(Integer, primary_key=True, index=True)
    crew_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    leg_id  = Column(Integer, ForeignKey("legs.id", ondelete="CASCADE"), nullable=False, index=True)

    match_score     = Column(Float, nullable=False)   # 0..100
    composite_score = Column(Float, nullable=False)   # 0..100, avant raffinement IA
    ai_rationale    = Column(Text, nullable=True)

    crew_status  = Column(PgEnum(MatchStatus), default=MatchStatus.PENDING, nullable=False)
    owner_status = Column(PgEnum(MatchStatus), default=MatchStatus.PENDING, nullable=False)

    expires_at = Column(DateTime(timezone=True), nullable=False)   # = start_date du leg
    batch_id   = Column(String, nullable=False, index=True)

    # Posé une seule fois, lors de l'acceptation mutuelle
    registration_id = Column(Integer, ForeignKey("registrations.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("crew_id", "leg_id", name="uq_match_crew_leg"),
        CheckConstraint("match_score >= 0 AND match_score <= 100", name="ck_match_score"),
    )

    leg = relationship("Leg")

    @property
    def is_mutual_accept(self) -> bool:
        return (
            self.crew_status == MatchStatus.ACCEPTED
            and self.owner_status == MatchStatus.ACCEPTED
        )

    def __repr__(self):
        return f"<CrewLegMatch id={self.id} crew={self.crew_id} leg={self.leg_id} score={self.match_score}>"


class AIUsageBudget(Base):
    __tablename__ = "ai_usage_budget"

    day   = Column(Date, primary_key=True)
    calls = Column(Integer, default=0, nullable=False)
