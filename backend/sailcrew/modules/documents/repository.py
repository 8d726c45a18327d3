# modules/documents/repository.py
"""
Accès DB pour le coffre documents : grants et journal d'accès.

consume_grant() est LE point de lecture : check-and-increment en un seul
UPDATE ... RETURNING, linéarisable par grant sous lecteurs concurrents.

Le journal d'accès n'expose que l'insertion et la lecture.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_
from sqlalchemy.exc import IntegrityError
from typing import List, Optional
from datetime import datetime, timezone

from sailcrew.shared.models import Document, DocumentAccessGrant, DocumentAccessLog
from sailcrew.shared.enums import GrantPurpose, AccessType


class DocumentRepository:

    # ── Documents ─────────────────────────────────────────────

    async def get_document(self, db: AsyncSession, document_id: int) -> Optional[Document]:
        r = await db.execute(select(Document).where(Document.id == document_id))
        return r.scalar_one_or_none()

    # ── Grants ────────────────────────────────────────────────

    async def create_grant(self, db: AsyncSession, **fields) -> Optional[DocumentAccessGrant]:
        """None si un grant actif existe déjà pour (document, grantee, purpose)."""
        db_obj = DocumentAccessGrant(**fields)
        try:
            db.add(db_obj)
            await db.commit()
            await db.refresh(db_obj)
            return db_obj
        except IntegrityError:
            await db.rollback()
            return None

    async def get_grant(self, db: AsyncSession, grant_id: int) -> Optional[DocumentAccessGrant]:
        r = await db.execute(select(DocumentAccessGrant).where(DocumentAccessGrant.id == grant_id))
        return r.scalar_one_or_none()

    async def get_grants_for_document(self, db: AsyncSession, document_id: int) -> List[DocumentAccessGrant]:
        r = await db.execute(
            select(DocumentAccessGrant)
            .where(DocumentAccessGrant.document_id == document_id)
            .order_by(DocumentAccessGrant.created_at.desc())
        )
        return r.scalars().all()

    async def revoke_grant(self, db: AsyncSession, grant: DocumentAccessGrant) -> DocumentAccessGrant:
        grant.is_revoked = True
        grant.revoked_at = datetime.now(timezone.utc)
        await db.flush()
        return grant

    async def consume_grant(
        self,
        db: AsyncSession,
        document_id: int,
        grantee_id: int,
        purpose: GrantPurpose,
        now: datetime,
    ) -> Optional[DocumentAccessGrant]:
        """Incrémente view_count SSI le grant est utilisable. Pas de commit."""
        stmt = (
            update(DocumentAccessGrant)
            .where(
                DocumentAccessGrant.document_id == document_id,
                DocumentAccessGrant.grantee_id == grantee_id,
                DocumentAccessGrant.purpose == purpose,
                DocumentAccessGrant.is_revoked.is_(False),
                DocumentAccessGrant.expires_at > now,
                or_(
                    DocumentAccessGrant.max_views.is_(None),
                    DocumentAccessGrant.view_count < DocumentAccessGrant.max_views,
                ),
            )
            .values(view_count=DocumentAccessGrant.view_count + 1)
            .returning(DocumentAccessGrant)
            .execution_options(synchronize_session=False)
        )
        r = await db.execute(stmt)
        return r.scalars().first()

    async def get_latest_grant(
        self, db: AsyncSession, document_id: int, grantee_id: int, purpose: GrantPurpose
    ) -> Optional[DocumentAccessGrant]:
        """Pour diagnostiquer un refus (expiré / révoqué / quota)."""
        r = await db.execute(
            select(DocumentAccessGrant)
            .where(
                DocumentAccessGrant.document_id == document_id,
                DocumentAccessGrant.grantee_id == grantee_id,
                DocumentAccessGrant.purpose == purpose,
            )
            .order_by(DocumentAccessGrant.is_revoked.asc(), DocumentAccessGrant.created_at.desc())
            .limit(1)
        )
        return r.scalar_one_or_none()

    # ── Journal d'accès (append-only) ─────────────────────────

    async def log_access(
        self,
        db: AsyncSession,
        *,
        document_id: Optional[int],
        document_owner_id: Optional[int],
        accessed_by: Optional[int],
        access_type: AccessType,
        access_granted: bool,
        denial_reason: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        db.add(DocumentAccessLog(
            document_id=document_id,
            document_owner_id=document_owner_id,
            accessed_by=accessed_by,
            access_type=access_type,
            access_granted=access_granted,
            denial_reason=denial_reason,
            details=details or {},
        ))
        await db.flush()

    async def get_access_log(self, db: AsyncSession, document_id: int, limit: int = 200) -> List[DocumentAccessLog]:
        r = await db.execute(
            select(DocumentAccessLog)
            .where(DocumentAccessLog.document_id == document_id)
            .order_by(DocumentAccessLog.created_at.desc())
            .limit(limit)
        )
        return r.scalars().all()
