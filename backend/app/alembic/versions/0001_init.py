"""init schema

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

PENDING_TENANT_REQUEST = sa.text("kind = 'tenant_request' AND status = 'pending'")


def upgrade():
    op.create_table(
        "app_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("phone_number", sa.String(length=40), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=True),
        sa.Column("nid", sa.String(length=40), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_app_users_phone_number", "app_users", ["phone_number"], unique=True)

    op.create_table(
        "properties",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=False),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "manager_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column(
            "property_id", sa.BigInteger(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "property_id", name="uq_manager_assignments_user_property"),
    )
    op.create_index("ix_manager_assignments_user_id", "manager_assignments", ["user_id"])
    op.create_index("ix_manager_assignments_property_id", "manager_assignments", ["property_id"])

    op.create_table(
        "floors",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column(
            "property_id", sa.BigInteger(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("rent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tenant_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("updated_by", sa.Integer(), nullable=True),
    )
    op.create_index("ix_floors_property_id", "floors", ["property_id"])
    op.create_index("ix_floors_tenant_user_id", "floors", ["tenant_user_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("floor_id", sa.BigInteger(), sa.ForeignKey("floors.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tenant_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("due_rent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("due_electricity_bill", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("received_money", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("full_payment", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_payments_floor_id", "payments", ["floor_id"])
    op.create_index("ix_payments_tenant_user_id", "payments", ["tenant_user_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("kind", sa.String(length=30), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=True),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("receiver_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column(
            "property_id", sa.BigInteger(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("floor_id", sa.BigInteger(), sa.ForeignKey("floors.id", ondelete="CASCADE"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=True),
        sa.Column("related_notification_id", sa.BigInteger(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("updated_by", sa.Integer(), nullable=True),
    )
    op.create_index("ix_notifications_sender_id", "notifications", ["sender_id"])
    op.create_index("ix_notifications_related_notification_id", "notifications", ["related_notification_id"])
    op.create_index("ix_notifications_receiver_created", "notifications", ["receiver_id", "created_at"])
    op.create_index("ix_notifications_floor_sender_status", "notifications", ["floor_id", "sender_id", "status"])
    # at most one pending tenant request per floor
    op.create_index(
        "uq_notifications_pending_tenant_request",
        "notifications",
        ["floor_id"],
        unique=True,
        postgresql_where=PENDING_TENANT_REQUEST,
        sqlite_where=PENDING_TENANT_REQUEST,
    )

    op.create_table(
        "scheduler_runs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("job_key", sa.String(length=80), nullable=False),
        sa.Column("cycle_key", sa.String(length=20), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("finished_at", sa.DateTime(), nullable=True),
        sa.Column("created_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("job_key", "cycle_key", name="uq_scheduler_runs_job_cycle"),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=80), nullable=False),
        sa.Column("entity_id", sa.String(length=80), nullable=False),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("before_json", sa.Text(), nullable=True),
        sa.Column("after_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_events_action", "audit_events", ["action"])


def downgrade():
    op.drop_table("audit_events")
    op.drop_table("scheduler_runs")
    op.drop_index("uq_notifications_pending_tenant_request", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("payments")
    op.drop_table("floors")
    op.drop_table("manager_assignments")
    op.drop_table("properties")
    op.drop_index("ix_app_users_phone_number", table_name="app_users")
    op.drop_table("app_users")
