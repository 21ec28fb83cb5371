"""Initial schema: users, calculation history, recent searches and depots.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column(
            "subscription_status",
            sa.String(20),
            server_default="free",
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── calculations ──────────────────────────────────────────────────
    op.create_table(
        "calculations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("base_location", sa.JSON, nullable=False),
        sa.Column("stops", sa.JSON, nullable=False),
        sa.Column("distance", sa.Float, nullable=False),
        sa.Column("driving_distance", sa.Float, nullable=True),
        sa.Column("max_distance_from_base", sa.Float, nullable=True),
        sa.Column("logbook_required", sa.Boolean, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_calculations_user_created", "calculations", ["user_id", "created_at"]
    )

    # ── recent_searches ───────────────────────────────────────────────
    op.create_table(
        "recent_searches",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("base_location", sa.JSON, nullable=False),
        sa.Column("stops", sa.JSON, nullable=True),
        sa.Column("destination", sa.JSON, nullable=True),
        sa.Column("distance", sa.Float, nullable=False),
        sa.Column("logbook_required", sa.Boolean, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_recent_searches_user_created",
        "recent_searches",
        ["user_id", "created_at"],
    )

    # ── depots ────────────────────────────────────────────────────────
    op.create_table(
        "depots",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("address", sa.String(500), nullable=False),
        sa.Column("lat", sa.Float, nullable=False),
        sa.Column("lng", sa.Float, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_depots_user", "depots", ["user_id"])


def downgrade() -> None:
    op.drop_table("depots")
    op.drop_table("recent_searches")
    op.drop_table("calculations")
    op.drop_table("users")
