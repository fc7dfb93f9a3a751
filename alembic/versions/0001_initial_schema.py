"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates all tables for the booking contract workflow:
users, bookings, contracts, contract_versions, contract_edit_requests,
contract_signatures, audit_logs, conversations, conversation_messages.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="artist"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- bookings ---
    op.create_table(
        "bookings",
        sa.Column("booking_id", sa.String(36), primary_key=True),
        sa.Column("artist_user_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("organizer_user_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="negotiating"),
        sa.Column("offer_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("final_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("offer_currency", sa.String(3), nullable=False, server_default="INR"),
        sa.Column("deposit_percent", sa.Numeric(5, 2), nullable=False, server_default="30"),
        sa.Column("event_title", sa.String(255), nullable=True),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("slot_time", sa.String(50), nullable=True),
        sa.Column("venue_name", sa.String(255), nullable=True),
        sa.Column("venue_address", sa.String(500), nullable=True),
        sa.Column("artist_name", sa.String(255), nullable=True),
        sa.Column("organizer_name", sa.String(255), nullable=True),
        sa.Column("meta", sa.JSON, nullable=False),
        sa.Column("cancel_reason", sa.String(100), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- contracts ---
    op.create_table(
        "contracts",
        sa.Column("contract_id", sa.String(36), primary_key=True),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.booking_id"), nullable=False, unique=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="sent"),
        sa.Column("current_version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("contract_text", sa.Text, nullable=False),
        sa.Column("terms", sa.JSON, nullable=False),
        sa.Column("signer_sequence", sa.JSON, nullable=True),
        sa.Column("initiated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deadline_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("artist_review_done_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("promoter_review_done_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("artist_accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("promoter_accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("artist_edit_used", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("promoter_edit_used", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("signed_by_artist", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("signed_by_promoter", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("artist_signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("promoter_signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_reviewed_by", sa.String(36), sa.ForeignKey("users.user_id"), nullable=True),
        sa.Column("admin_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_note", sa.Text, nullable=True),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("void_reason", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_contracts_status_deadline", "contracts", ["status", "deadline_at"])

    # --- contract_versions ---
    op.create_table(
        "contract_versions",
        sa.Column("version_id", sa.String(36), primary_key=True),
        sa.Column("contract_id", sa.String(36), sa.ForeignKey("contracts.contract_id"), nullable=False),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("contract_text", sa.Text, nullable=False),
        sa.Column("terms", sa.JSON, nullable=False),
        sa.Column("created_by", sa.String(36), sa.ForeignKey("users.user_id"), nullable=True),
        sa.Column("change_summary", sa.String(500), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("contract_id", "version", name="uq_contract_versions_contract_version"),
    )

    # --- contract_edit_requests ---
    op.create_table(
        "contract_edit_requests",
        sa.Column("request_id", sa.String(36), primary_key=True),
        sa.Column("contract_id", sa.String(36), sa.ForeignKey("contracts.contract_id"), nullable=False),
        sa.Column("requested_by", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("requested_by_role", sa.String(20), nullable=False),
        sa.Column("changes", sa.JSON, nullable=False),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("responded_by", sa.String(36), sa.ForeignKey("users.user_id"), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("response_note", sa.Text, nullable=True),
        sa.Column("resulting_version", sa.Integer, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "uq_contract_edit_requests_one_pending",
        "contract_edit_requests",
        ["contract_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    # --- contract_signatures ---
    op.create_table(
        "contract_signatures",
        sa.Column("signature_id", sa.String(36), primary_key=True),
        sa.Column("contract_id", sa.String(36), sa.ForeignKey("contracts.contract_id"), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("signature_data", sa.Text, nullable=False),
        sa.Column("signature_type", sa.String(20), nullable=False, server_default="typed"),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("contract_id", "role", name="uq_contract_signatures_contract_role"),
    )

    # --- audit_logs ---
    op.create_table(
        "audit_logs",
        sa.Column("audit_id", sa.String(36), primary_key=True),
        sa.Column("who", sa.String(36), sa.ForeignKey("users.user_id"), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False, server_default="contract"),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("context", sa.JSON, nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])

    # --- conversations ---
    op.create_table(
        "conversations",
        sa.Column("conversation_id", sa.String(36), primary_key=True),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.booking_id"), nullable=False),
        sa.Column("conversation_type", sa.String(30), nullable=False, server_default="contract"),
        sa.Column("subject", sa.String(255), nullable=True),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("booking_id", "conversation_type", name="uq_conversations_booking_type"),
    )

    # --- conversation_messages ---
    op.create_table(
        "conversation_messages",
        sa.Column("message_id", sa.String(36), primary_key=True),
        sa.Column("conversation_id", sa.String(36), sa.ForeignKey("conversations.conversation_id"), nullable=False),
        sa.Column("sender_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=True),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("message_type", sa.String(20), nullable=False, server_default="system"),
        sa.Column("payload", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("conversation_messages")
    op.drop_table("conversations")
    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("contract_signatures")
    op.drop_index("uq_contract_edit_requests_one_pending", table_name="contract_edit_requests")
    op.drop_table("contract_edit_requests")
    op.drop_table("contract_versions")
    op.drop_index("ix_contracts_status_deadline", table_name="contracts")
    op.drop_table("contracts")
    op.drop_table("bookings")
    op.drop_table("users")
