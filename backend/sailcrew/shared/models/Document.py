# sailcrew/shared/models/Document.py
"""
Coffre documents (passeports, licences…).

Document            : fichier privé, propriété du marin
DocumentAccessGrant : permission temporaire, bornée à un purpose, créée
                      EXCLUSIVEMENT par le propriétaire du document
DocumentAccessLog   : journal d'accès append-only (aucune mise à jour/suppression
                      exposée par le repository)
"""
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, JSON, Index,
    ForeignKey, CheckConstraint, text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from sailcrew.core.database import Base, PgEnum
from sailcrew.shared.enums import GrantPurpose, AccessType


class Document(Base):
    __tablename__ = "documents"

    id       = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    file_path = Column(String, nullable=False)   # relatif à DOCUMENT_STORAGE_DIR
    file_name = Column(String, nullable=False)
    file_type = Column(String, nullable=False, default="application/pdf")
    category  = Column(String, nullable=True)    # "passport", "sailing_license", ...

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    owner  = relationship("User", back_populates="documents")
    grants = relationship("DocumentAccessGrant", back_populates="document", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Document id={self.id} owner={self.owner_id} category={self.category}>"


class DocumentAccessGrant(Base):
    """
    Utilisable par un lecteur SSI :
        not is_revoked
        and expires_at > now
        and (max_views is None or view_count < max_views)
        and purpose == purpose demandé
    Voir engine/assessment/grants.py (is_grant_usable).
    """
    __tablename__ = "document_access_grants"

    id          = Column(Integer, primary_key=True, index=True)
    document_id = Column(Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    grantor_id  = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    grantee_id  = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    purpose              = Column(PgEnum(GrantPurpose), nullable=False)
    purpose_reference_id = Column(Integer, nullable=True)   # ex : voyage_id

    expires_at = Column(DateTime(timezone=True), nullable=False)
    max_views  = Column(Integer, nullable=True)
    view_count = Column(Integer, default=0, nullable=False)

    is_revoked = Column(Boolean, default=False, nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("grantor_id != grantee_id", name="ck_grant_no_self_grant"),
        CheckConstraint("view_count >= 0", name="ck_grant_view_count"),
        CheckConstraint("max_views IS NULL OR max_views > 0", name="ck_grant_max_views"),
        # Un seul grant actif par (document, grantee, purpose)
        Index(
            "ix_grant_unique_active", "document_id", "grantee_id", "purpose",
            unique=True, postgresql_where=text("is_revoked = false"),
        ),
    )

    document = relationship("Document", back_populates="grants")

    def __repr__(self):
        return f"<DocumentAccessGrant id={self.id} doc={self.document_id} grantee={self.grantee_id} purpose={self.purpose}>"


class DocumentAccessLog(Base):
    __tablename__ = "document_access_log"

    id                = Column(Integer, primary_key=True, index=True)
    document_id       = Column(Integer, ForeignKey("documents.id", ondelete="SET NULL"), nullable=True, index=True)
    document_owner_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    accessed_by       = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    access_type    = Column(PgEnum(AccessType), nullable=False)
    access_granted = Column(Boolean, nullable=False)
    denial_reason  = Column(String, nullable=True)
    details        = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
