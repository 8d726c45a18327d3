# modules/documents/service.py
"""
Service coffre documents.

- create_grant / revoke_grant : EXCLUSIVEMENT par le propriétaire du document.
  Le serveur ne crée jamais de grant pour le compte du marin.
- validate_grant : DocumentGrantValidator (check-and-increment atomique +
  journal d'accès pour chaque contrôle, réussi ou non). Aucune création
  implicite : grant absent / expiré → GrantMissing / GrantExpired.
- fetch_document : lecture du contenu via un grant déjà validé.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from sailcrew.core.config import settings
from sailcrew.engine.assessment.grants import denial_reason
from sailcrew.infra import storage
from sailcrew.modules.documents.repository import DocumentRepository
from sailcrew.shared.enums import AccessType, GrantPurpose
from sailcrew.shared.errors import GrantExpired, GrantMissing
from sailcrew.shared.models import DocumentAccessGrant, User

logger = structlog.get_logger(__name__)

repo = DocumentRepository()


class DocumentService:

    # ── Grants (propriétaire) ─────────────────────────────────────────────────

    async def create_grant(self, db: AsyncSession, document_id: int, payload, grantor: User) -> DocumentAccessGrant:
        document = await self._owned_document(db, document_id, grantor)

        if payload.grantee_id == grantor.id:
            raise ValueError("SELF_GRANT_NOT_ALLOWED")

        now = datetime.now(timezone.utc)
        expires_at = _aware(payload.expires_at)
        if expires_at <= now:
            raise ValueError("EXPIRES_AT_IN_PAST")
        if expires_at > now + timedelta(days=settings.MAX_GRANT_DURATION_DAYS):
            raise ValueError(f"GRANT_LONGER_THAN_{settings.MAX_GRANT_DURATION_DAYS}_DAYS")

        grant = await repo.create_grant(
            db,
            document_id=document.id,
            grantor_id=grantor.id,
            grantee_id=payload.grantee_id,
            purpose=payload.purpose,
            purpose_reference_id=payload.purpose_reference_id,
            expires_at=expires_at,
            max_views=payload.max_views,
        )
        if grant is None:
            raise ValueError("ACTIVE_GRANT_EXISTS")

        await repo.log_access(
            db,
            document_id=document.id,
            document_owner_id=document.owner_id,
            accessed_by=grantor.id,
            access_type=AccessType.GRANT_CREATE,
            access_granted=True,
            details={"grant_id": grant.id, "grantee_id": grant.grantee_id, "purpose": _value(grant.purpose)},
        )
        await db.commit()
        logger.info("grant.created", grant_id=grant.id, document_id=document.id, purpose=_value(grant.purpose))
        return grant

    async def revoke_grant(self, db: AsyncSession, grant_id: int, user: User) -> DocumentAccessGrant:
        grant = await repo.get_grant(db, grant_id)
        if not grant:
            raise LookupError("Grant introuvable.")
        if grant.grantor_id != user.id:
            raise PermissionError("Seul le propriétaire du document peut révoquer ce grant.")
        if grant.is_revoked:
            return grant

        await repo.revoke_grant(db, grant)
        await repo.log_access(
            db,
            document_id=grant.document_id,
            document_owner_id=grant.grantor_id,
            accessed_by=user.id,
            access_type=AccessType.GRANT_REVOKE,
            access_granted=True,
            details={"grant_id": grant.id},
        )
        await db.commit()
        logger.info("grant.revoked", grant_id=grant.id)
        return grant

    async def list_grants(self, db: AsyncSession, document_id: int, user: User) -> List[DocumentAccessGrant]:
        await self._owned_document(db, document_id, user)
        return await repo.get_grants_for_document(db, document_id)

    async def get_access_log(self, db: AsyncSession, document_id: int, user: User) -> List:
        await self._owned_document(db, document_id, user)
        return await repo.get_access_log(db, document_id)

    # ── DocumentGrantValidator ────────────────────────────────────────────────

    async def validate_grant(
        self,
        db: AsyncSession,
        document_id: int,
        grantee_id: int,
        purpose: GrantPurpose,
        now: Optional[datetime] = None,
    ) -> DocumentAccessGrant:
        now = now or datetime.now(timezone.utc)
        document = await repo.get_document(db, document_id)
        owner_id = document.owner_id if document else None

        grant = await repo.consume_grant(db, document_id, grantee_id, purpose, now) if document else None

        if grant:
            await repo.log_access(
                db,
                document_id=document_id,
                document_owner_id=owner_id,
                accessed_by=grantee_id,
                access_type=AccessType.GRANT_CHECK,
                access_granted=True,
                details={"grant_id": grant.id, "purpose": _value(purpose), "view_count": grant.view_count},
            )
            await db.commit()
            return grant

        latest = await repo.get_latest_grant(db, document_id, grantee_id, purpose) if document else None
        reason = "no_document" if document is None else (denial_reason(latest, purpose, now) or "no_grant")
        await repo.log_access(
            db,
            document_id=document_id if document else None,
            document_owner_id=owner_id,
            accessed_by=grantee_id,
            access_type=AccessType.GRANT_CHECK,
            access_granted=False,
            denial_reason=reason,
            details={"purpose": _value(purpose), "requested_document_id": document_id},
        )
        await db.commit()
        logger.info("grant.denied", document_id=document_id, grantee_id=grantee_id, reason=reason)

        if reason == "expired":
            raise GrantExpired(reason, document_id=document_id)
        raise GrantMissing(reason, document_id=document_id)

    async def fetch_document(
        self, db: AsyncSession, document_id: int, grant: DocumentAccessGrant
    ) -> Tuple[bytes, str]:
        """Contenu du document : uniquement via un grant validé sur CE document."""
        if grant is None or grant.document_id != document_id:
            raise GrantMissing("grant_document_mismatch", document_id=document_id)
        document = await repo.get_document(db, document_id)
        if not document:
            raise LookupError("Document introuvable.")

        content = await asyncio.to_thread(storage.read_document, document.file_path)
        await repo.log_access(
            db,
            document_id=document.id,
            document_owner_id=document.owner_id,
            accessed_by=grant.grantee_id,
            access_type=AccessType.VIEW,
            access_granted=True,
            details={"grant_id": grant.id, "purpose": _value(grant.purpose)},
        )
        await db.commit()
        return content, document.file_type

    # ── Helpers ───────────────────────────────────────────────────────────────

    async def _owned_document(self, db: AsyncSession, document_id: int, user: User):
        document = await repo.get_document(db, document_id)
        if not document:
            raise LookupError("Document introuvable.")
        if document.owner_id != user.id:
            raise PermissionError("Accès refusé.")
        return document


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str)
