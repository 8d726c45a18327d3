"""initial schema : sailcrew v1 : inscriptions, coffre documents, matching

Revision ID: 001_initial
Create Date: 12/10/2026
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '001_initial'
down_revision = None

# Valeurs des Enums (VALEURS des enums Python, voir core/database.PgEnum)
USER_ROLE = ('crew', 'owner', 'admin')
VOYAGE_STATE = ('draft', 'published', 'archived')
RISK_LEVEL = ('Coastal sailing', 'Offshore sailing', 'Extreme sailing')
REQUIREMENT_KIND = ('risk_level', 'experience_level', 'skill', 'passport', 'question')
REGISTRATION_STATUS = ('Pending approval', 'Approved', 'Not approved', 'Cancelled')
REGISTRATION_SOURCE = ('crew', 'match')
ASSESSMENT_STAGE = ('Submitted', 'RiskGate', 'ExperienceGate', 'ConsentCheck', 'PassportGate', 'SkillScoring', 'Decision')
GRANT_PURPOSE = ('journey_registration', 'identity_verification', 'insurance_proof', 'certification_check', 'other')
ACCESS_TYPE = ('view', 'grant_check', 'grant_create', 'grant_revoke')
MATCH_STATUS = ('pending', 'accepted', 'skipped', 'declined')
NOTIFICATION_KIND = (
    'registration_approved', 'registration_pending', 'registration_gate_failed', 'registration_denied',
    'new_registration', 'ai_review_needed', 'ai_auto_approved', 'match_suggested',
)

ENUMS = {
    "userrole": USER_ROLE,
    "voyagestate": VOYAGE_STATE,
    "risklevel": RISK_LEVEL,
    "requirementkind": REQUIREMENT_KIND,
    "registrationstatus": REGISTRATION_STATUS,
    "registrationsource": REGISTRATION_SOURCE,
    "assessmentstage": ASSESSMENT_STAGE,
    "grantpurpose": GRANT_PURPOSE,
    "accesstype": ACCESS_TYPE,
    "matchstatus": MATCH_STATUS,
    "notificationkind": NOTIFICATION_KIND,
}


def _enum(name):
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    # ── 1. CREATION MANUELLE DES TYPES ENUM (SÉCURISÉE) ──
    for name, values in ENUMS.items():
        vals_str = ", ".join([f"'{v}'" for v in values])
        op.execute(f"""
            DO $$
            BEGIN
                IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = '{name}') THEN
                    CREATE TYPE {name} AS ENUM ({vals_str});
                END IF;
            END $$;
        """)

    # ── 2. CREATION DES TABLES ──
    # postgresql.ENUM(..., create_type=False) : les types existent déjà.

    op.create_table("users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("email", sa.String, nullable=False),
        sa.Column("name", sa.String, nullable=False),
        sa.Column("role", _enum("userrole"), nullable=False, server_default="crew"),
        sa.Column("is_active", sa.Boolean, default=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), onupdate=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table("crew_profiles",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False),
        sa.Column("full_name", sa.String, nullable=True),
        sa.Column("experience_level", sa.Integer, nullable=True),
        sa.Column("risk_comfort", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("skills", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("ai_processing_consent", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("matching_consent", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("home_port", sa.String, nullable=True),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column("availability_start", sa.Date, nullable=True),
        sa.Column("availability_end", sa.Date, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), onupdate=sa.func.now()),
    )
    op.create_index("ix_crew_profiles_matching_consent", "crew_profiles", ["matching_consent"])

    op.create_table("voyages",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("owner_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String, nullable=False),
        sa.Column("state", _enum("voyagestate"), nullable=False, server_default="draft"),
        sa.Column("auto_approval_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("passing_score", sa.Float, nullable=False, server_default="7.0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("passing_score >= 0 AND passing_score <= 10", name="ck_voyage_passing_score"),
    )
    op.create_index("ix_voyages_owner_id", "voyages", ["owner_id"])
    op.create_index("ix_voyages_state", "voyages", ["state"])

    op.create_table("legs",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("voyage_id", sa.Integer, sa.ForeignKey("voyages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String, nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("crew_needed", sa.Integer, nullable=False, server_default="1"),
        sa.Column("risk_level", _enum("risklevel"), nullable=True),
        sa.Column("min_experience_level", sa.Integer, nullable=True),
        sa.Column("skills", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("start_latitude", sa.Float, nullable=True),
        sa.Column("start_longitude", sa.Float, nullable=True),
    )
    op.create_index("ix_legs_voyage_id", "legs", ["voyage_id"])

    op.create_table("voyage_requirements",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("voyage_id", sa.Integer, sa.ForeignKey("voyages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", _enum("requirementkind"), nullable=False),
        sa.Column("order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_required", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("required_risk_level", _enum("risklevel"), nullable=True),
        sa.Column("min_experience_level", sa.Integer, nullable=True),
        sa.Column("skill_name", sa.String, nullable=True),
        sa.Column("question_text", sa.Text, nullable=True),
        sa.Column("qualification_criteria", sa.Text, nullable=True),
        sa.Column("weight", sa.Integer, nullable=False, server_default="5"),
        sa.Column("requires_photo_validation", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("pass_confidence_score", sa.Integer, nullable=False, server_default="7"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("weight >= 0 AND weight <= 10", name="ck_requirement_weight"),
        sa.CheckConstraint(
            "pass_confidence_score >= 0 AND pass_confidence_score <= 10",
            name="ck_requirement_pass_confidence",
        ),
    )
    op.create_index("ix_voyage_requirements_voyage_id", "voyage_requirements", ["voyage_id"])

    # ── Coffre documents ──
    op.create_table("documents",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("owner_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("file_path", sa.String, nullable=False),
        sa.Column("file_name", sa.String, nullable=False),
        sa.Column("file_type", sa.String, nullable=False, server_default="application/pdf"),
        sa.Column("category", sa.String, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_documents_owner_id", "documents", ["owner_id"])

    op.create_table("document_access_grants",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("document_id", sa.Integer, sa.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False),
        sa.Column("grantor_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("grantee_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("purpose", _enum("grantpurpose"), nullable=False),
        sa.Column("purpose_reference_id", sa.Integer, nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_views", sa.Integer, nullable=True),
        sa.Column("view_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_revoked", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("grantor_id != grantee_id", name="ck_grant_no_self_grant"),
        sa.CheckConstraint("view_count >= 0", name="ck_grant_view_count"),
        sa.CheckConstraint("max_views IS NULL OR max_views > 0", name="ck_grant_max_views"),
    )
    op.create_index("ix_document_access_grants_document_id", "document_access_grants", ["document_id"])
    op.create_index("ix_document_access_grants_grantee_id", "document_access_grants", ["grantee_id"])
    op.create_index(
        "ix_grant_unique_active", "document_access_grants",
        ["document_id", "grantee_id", "purpose"],
        unique=True, postgresql_where=sa.text("is_revoked = false"),
    )

    op.create_table("document_access_log",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("document_id", sa.Integer, sa.ForeignKey("documents.id", ondelete="SET NULL"), nullable=True),
        sa.Column("document_owner_id", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("accessed_by", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("access_type", _enum("accesstype"), nullable=False),
        sa.Column("access_granted", sa.Boolean, nullable=False),
        sa.Column("denial_reason", sa.String, nullable=True),
        sa.Column("details", sa.JSON, nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_document_access_log_document_id", "document_access_log", ["document_id"])
    op.create_index("ix_document_access_log_created_at", "document_access_log", ["created_at"])

    # ── Inscriptions ──
    op.create_table("registrations",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("leg_id", sa.Integer, sa.ForeignKey("legs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", _enum("registrationstatus"), nullable=False, server_default="Pending approval"),
        sa.Column("source", _enum("registrationsource"), nullable=False, server_default="crew"),
        sa.Column("auto_approved", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("aggregate_score", sa.Float, nullable=True),
        sa.Column("reasoning", sa.Text, nullable=True),
        sa.Column("stopped_at", _enum("assessmentstage"), nullable=True),
        sa.Column("assessment_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assessed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("owner_decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("owner_note", sa.String, nullable=True),
        sa.Column("crew_cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), onupdate=sa.func.now()),
        sa.UniqueConstraint("leg_id", "user_id", name="uq_registration_leg_user"),
    )
    op.create_index("ix_registrations_leg_id", "registrations", ["leg_id"])
    op.create_index("ix_registrations_user_id", "registrations", ["user_id"])
    op.create_index("ix_registrations_auto_approved", "registrations", ["auto_approved"])

    op.create_table("registration_answers",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("registration_id", sa.Integer, sa.ForeignKey("registrations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("requirement_id", sa.Integer, sa.ForeignKey("voyage_requirements.id", ondelete="CASCADE"), nullable=False),
        sa.Column("answer_text", sa.Text, nullable=True),
        sa.Column("passport_document_id", sa.Integer, sa.ForeignKey("documents.id"), nullable=True),
        sa.Column("score", sa.Float, nullable=True),
        sa.Column("reasoning", sa.Text, nullable=True),
        sa.Column("passed", sa.Boolean, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("registration_id", "requirement_id", name="uq_answer_registration_requirement"),
        sa.CheckConstraint("score IS NULL OR (score >= 0 AND score <= 10)", name="ck_answer_score"),
    )
    op.create_index("ix_registration_answers_registration_id", "registration_answers", ["registration_id"])

    op.create_table("assessment_runs",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("registration_id", sa.Integer, sa.ForeignKey("registrations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("outcome", _enum("registrationstatus"), nullable=False),
        sa.Column("stopped_at", _enum("assessmentstage"), nullable=True),
        sa.Column("ai_calls", sa.Integer, nullable=False, server_default="0"),
        sa.Column("trace", sa.JSON, nullable=False, server_default="[]"),
    )
    op.create_index("ix_assessment_runs_registration_id", "assessment_runs", ["registration_id"])

    # ── Matching proactif ──
    op.create_table("crew_leg_matches",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("crew_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("leg_id", sa.Integer, sa.ForeignKey("legs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("match_score", sa.Float, nullable=False),
        sa.Column("composite_score", sa.Float, nullable=False),
        sa.Column("ai_rationale", sa.Text, nullable=True),
        sa.Column("crew_status", _enum("matchstatus"), nullable=False, server_default="pending"),
        sa.Column("owner_status", _enum("matchstatus"), nullable=False, server_default="pending"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("batch_id", sa.String, nullable=False),
        sa.Column("registration_id", sa.Integer, sa.ForeignKey("registrations.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("crew_id", "leg_id", name="uq_match_crew_leg"),
        sa.CheckConstraint("match_score >= 0 AND match_score <= 100", name="ck_match_score"),
    )
    op.create_index("ix_crew_leg_matches_crew_id", "crew_leg_matches", ["crew_id"])
    op.create_index("ix_crew_leg_matches_leg_id", "crew_leg_matches", ["leg_id"])
    op.create_index("ix_crew_leg_matches_batch_id", "crew_leg_matches", ["batch_id"])

    op.create_table("ai_usage_budget",
        sa.Column("day", sa.Date, primary_key=True),
        sa.Column("calls", sa.Integer, nullable=False, server_default="0"),
    )

    op.create_table("notifications",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", _enum("notificationkind"), nullable=False),
        sa.Column("payload", sa.JSON, nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    tables = [
        "notifications", "ai_usage_budget", "crew_leg_matches",
        "assessment_runs", "registration_answers", "registrations",
        "document_access_log", "document_access_grants", "documents",
        "voyage_requirements", "legs", "voyages",
        "crew_profiles", "users",
    ]
    for table in tables:
        op.drop_table(table)

    for e in ENUMS:
        op.execute(f"DROP TYPE IF EXISTS {e}")
