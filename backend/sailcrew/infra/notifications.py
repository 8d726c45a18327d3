# sailcrew/infra/notifications.py
"""
Dispatch des notifications : notify(user_id, kind, payload).

- Ligne in-app (table notifications) dans une session dédiée
- Email SMTP à l'owner pour les kinds qui demandent une revue humaine

Effet de bord uniquement : une erreur de dispatch est loggée, jamais
propagée au pipeline (la décision est déjà écrite).
"""
import asyncio
import smtplib
from html import escape
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from sailcrew.core.config import settings
from sailcrew.core.database import AsyncSessionLocal
from sailcrew.shared.enums import NotificationKind
from sailcrew.shared.models import Notification, User

logger = structlog.get_logger(__name__)

# Kinds qui déclenchent aussi un email
EMAIL_KINDS = {NotificationKind.AI_REVIEW_NEEDED, NotificationKind.NEW_REGISTRATION}


def _review_needed_message(to_email: str, payload: dict) -> MIMEMultipart:
    review_url = f"{settings.BASE_URL}/registrations/{payload.get('registration_id')}"
    leg_name = payload.get("leg_name") or "votre leg"
    reason = payload.get("reason") or "revue manuelle requise"

    message = MIMEMultipart("alternative")
    message["Subject"] = f"⚓ Inscription à examiner : {leg_name}"
    message["From"] = f"SailCrew <{settings.EMAIL_FROM}>"
    message["To"] = to_email

    text = f"Une inscription sur {leg_name} attend votre décision ({reason}). Lien : {review_url}"
    body = f"""
    <html>
      <body style="font-family: Arial, sans-serif; color: #0F172A;">
        <h2 style="color: #0F172A;">Bonjour,</h2>
        <p>Une nouvelle inscription sur <strong>{escape(leg_name)}</strong> attend votre décision.</p>
        <p>Motif : {escape(reason)}</p>
        <div style="margin: 30px 0;">
          <a href="{escape(review_url)}"
             style="background-color: #0F172A; color: white; padding: 12px 25px; text-decoration: none; border-radius: 8px; font-weight: bold;">
             EXAMINER L'INSCRIPTION
          </a>
        </div>
        <p style="font-size: 12px; color: #64748B;">L'équipe SailCrew.</p>
      </body>
    </html>
    """
    message.attach(MIMEText(text, "plain"))
    message.attach(MIMEText(body, "html"))
    return message


def send_review_needed_email(to_email: str, payload: dict) -> bool:
    """Bloquant : appelé via asyncio.to_thread."""
    if not settings.SMTP_USER:
        logger.info("notification.email_skipped", reason="smtp_not_configured")
        return False

    message = _review_needed_message(to_email, payload)
    try:
        with smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT) as server:
            server.starttls()
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(settings.EMAIL_FROM, to_email, message.as_string())
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("notification.email_failed", error=str(e))
        return False


class NotificationDispatcher:

    def __init__(self, session_factory=AsyncSessionLocal):
        self._session_factory = session_factory

    async def notify(self, user_id: int, kind: NotificationKind, payload: Optional[dict] = None) -> None:
        payload = payload or {}
        try:
            async with self._session_factory() as db:
                db.add(Notification(user_id=user_id, kind=kind, payload=payload))
                email = None
                if kind in EMAIL_KINDS:
                    email = await db.scalar(select(User.email).where(User.id == user_id))
                await db.commit()
        except SQLAlchemyError as e:
            logger.warning("notification.store_failed", user_id=user_id, kind=kind.value, error=str(e))
            return

        logger.info("notification.sent", user_id=user_id, kind=kind.value)
        if email:
            await asyncio.to_thread(send_review_needed_email, email, payload)


dispatcher = NotificationDispatcher()
