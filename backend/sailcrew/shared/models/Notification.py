# sailcrew/shared/models/Notification.py
from sqlalchemy import Column, Integer, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func

from sailcrew.core.database import Base, PgEnum
from sailcrew.shared.enums import NotificationKind


class Notification(Base):
    """Boîte de réception in-app. Écrite par infra/notifications.py uniquement."""
    __tablename__ = "notifications"

    id      = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    kind    = Column(PgEnum(NotificationKind), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    read_at    = Column(DateTime(timezone=True), nullable=True)
