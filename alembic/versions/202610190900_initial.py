"""initial schema

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610190900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column(
            "type", sa.Enum("income", "expense", name="transactiontype"), nullable=False
        ),
        sa.Column("description", sa.String(length=200), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "payment_method",
            sa.Enum("cash", "debit", "credit", "pix", "transfer", name="paymentmethod"),
            nullable=False,
        ),
        sa.Column("card_id", sa.String(length=32)),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime()),
        *_timestamps(),
        sa.CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_date", "transactions", ["date"])
    op.create_index("ix_transactions_type_date", "transactions", ["type", "date"])
    op.create_index("ix_transactions_card", "transactions", ["card_id"])

    op.create_table(
        "cards",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("limit_cents", sa.Integer(), nullable=False),
        sa.Column("limit_used_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("available_limit_cents", sa.Integer(), nullable=False),
        sa.Column("brand", sa.String(length=40)),
        sa.Column("color", sa.String(length=9)),
        sa.Column("closing_day", sa.Integer()),
        sa.Column("due_day", sa.Integer()),
        *_timestamps(),
        sa.CheckConstraint("limit_cents > 0", name="ck_cards_limit_positive"),
        sa.CheckConstraint("limit_used_cents >= 0", name="ck_cards_used_non_negative"),
    )

    op.create_table(
        "goals",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("type", sa.Enum("savings", "budget", name="goaltype"), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("target_cents", sa.Integer(), nullable=False),
        sa.Column("current_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("deadline", sa.Date()),
        sa.Column("category", sa.String(length=100)),
        *_timestamps(),
        sa.CheckConstraint("target_cents >= 0", name="ck_goals_target_positive"),
    )

    op.create_table(
        "investments",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("type", sa.String(length=60), nullable=False),
        sa.Column("initial_cents", sa.Integer(), nullable=False),
        sa.Column("current_cents", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("initial_cents >= 0", name="ck_investments_initial_positive"),
        sa.CheckConstraint("current_cents >= 0", name="ck_investments_current_positive"),
    )

    op.create_table(
        "reminders",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("description", sa.String(length=200), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("kind", sa.String(length=40)),
        *_timestamps(),
    )
    op.create_index("ix_reminders_due_date", "reminders", ["due_date"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("title", sa.String(length=120), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "severity",
            sa.Enum("success", "error", "warning", "info", name="severity"),
            nullable=False,
        ),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])

    op.create_table(
        "settings",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column(
            "currency",
            sa.Enum("EUR", "USD", "BRL", "GBP", name="currencycode"),
            nullable=False,
        ),
        sa.Column("language", sa.String(length=10), nullable=False),
        sa.Column(
            "theme", sa.Enum("auto", "light", "dark", name="theme"), nullable=False
        ),
        sa.Column(
            "notifications_enabled",
            sa.Boolean(),
            nullable=False,
            server_default=sa.true(),
        ),
        *_timestamps(),
    )


def downgrade():
    op.drop_table("settings")
    op.drop_index("ix_notifications_created_at", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_reminders_due_date", table_name="reminders")
    op.drop_table("reminders")
    op.drop_table("investments")
    op.drop_table("goals")
    op.drop_table("cards")
    op.drop_index("ix_transactions_card", table_name="transactions")
    op.drop_index("ix_transactions_type_date", table_name="transactions")
    op.drop_index("ix_transactions_date", table_name="transactions")
    op.drop_table("transactions")
