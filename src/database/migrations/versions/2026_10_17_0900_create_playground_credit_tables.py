"""Create playground credit, session and usage tables

Revision ID: 1a2f0c9d7e31
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "1a2f0c9d7e31"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("verified_author", sa.Boolean(), nullable=False),
        sa.Column("stripe_customer_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
        sa.UniqueConstraint("email", name=op.f("uq_users_email")),
    )

    op.create_table(
        "packages",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("latest_version", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_packages")),
        sa.UniqueConstraint("name", name=op.f("uq_packages_name")),
    )

    op.create_table(
        "package_versions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("package_id", sa.Uuid(), nullable=False),
        sa.Column("version", sa.String(), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["package_id"],
            ["packages.id"],
            name=op.f("fk_package_versions_package_id_packages"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_package_versions")),
        sa.UniqueConstraint(
            "package_id", "version", name=op.f("uq_package_versions_package_id")
        ),
    )
    op.create_index(
        op.f("ix_package_versions_package_id"), "package_versions", ["package_id"]
    )

    op.create_table(
        "playground_credits",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("monthly_credits", sa.Integer(), nullable=False),
        sa.Column("monthly_credits_used", sa.Integer(), nullable=False),
        sa.Column("monthly_reset_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rollover_credits", sa.Integer(), nullable=False),
        sa.Column("rollover_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("purchased_credits", sa.Integer(), nullable=False),
        sa.Column("lifetime_earned", sa.Integer(), nullable=False),
        sa.Column("lifetime_spent", sa.Integer(), nullable=False),
        sa.Column("lifetime_purchased", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "monthly_credits >= 0",
            name=op.f("ck_playground_credits_monthly_non_negative"),
        ),
        sa.CheckConstraint(
            "monthly_credits_used >= 0 AND monthly_credits_used <= monthly_credits",
            name=op.f("ck_playground_credits_monthly_used_within_allocation"),
        ),
        sa.CheckConstraint(
            "rollover_credits >= 0",
            name=op.f("ck_playground_credits_rollover_non_negative"),
        ),
        sa.CheckConstraint(
            "purchased_credits >= 0",
            name=op.f("ck_playground_credits_purchased_non_negative"),
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_playground_credits_user_id_users"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("user_id", name=op.f("pk_playground_credits")),
    )

    op.create_table(
        "playground_credit_transactions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("transaction_type", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("session_id", sa.Uuid(), nullable=True),
        sa.Column("purchase_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_playground_credit_transactions_user_id_users"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint(
            "id", name=op.f("pk_playground_credit_transactions")
        ),
    )
    for column in ("user_id", "transaction_type", "created_at"):
        op.create_index(
            op.f(f"ix_playground_credit_transactions_{column}"),
            "playground_credit_transactions",
            [column],
        )

    op.create_table(
        "playground_credit_purchases",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("credits", sa.Integer(), nullable=False),
        sa.Column("bonus_credits", sa.Integer(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("package_type", sa.String(), nullable=False),
        sa.Column("stripe_payment_intent_id", sa.String(), nullable=False),
        sa.Column("stripe_customer_id", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("failure_reason", sa.String(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_playground_credit_purchases_user_id_users"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_playground_credit_purchases")),
        sa.UniqueConstraint(
            "stripe_payment_intent_id",
            name=op.f("uq_playground_credit_purchases_stripe_payment_intent_id"),
        ),
    )
    op.create_index(
        op.f("ix_playground_credit_purchases_user_id"),
        "playground_credit_purchases",
        ["user_id"],
    )

    op.create_table(
        "playground_sessions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("package_id", sa.Uuid(), nullable=True),
        sa.Column("package_version", sa.String(), nullable=True),
        sa.Column("package_name", sa.String(), nullable=True),
        sa.Column("conversation", sa.JSON(), nullable=False),
        sa.Column("credits_spent", sa.Integer(), nullable=False),
        sa.Column("model", sa.String(), nullable=False),
        sa.Column("total_tokens", sa.Integer(), nullable=False),
        sa.Column("total_duration_ms", sa.Integer(), nullable=False),
        sa.Column("run_count", sa.Integer(), nullable=False),
        sa.Column("is_custom_prompt", sa.Boolean(), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("share_token", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["package_id"],
            ["packages.id"],
            name=op.f("fk_playground_sessions_package_id_packages"),
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_playground_sessions_user_id_users"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_playground_sessions")),
        sa.UniqueConstraint(
            "share_token", name=op.f("uq_playground_sessions_share_token")
        ),
    )
    op.create_index(
        op.f("ix_playground_sessions_user_id"), "playground_sessions", ["user_id"]
    )

    op.create_table(
        "playground_usage",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("package_id", sa.Uuid(), nullable=True),
        sa.Column("session_id", sa.Uuid(), nullable=True),
        sa.Column("model", sa.String(), nullable=False),
        sa.Column("tokens_used", sa.Integer(), nullable=False),
        sa.Column("duration_ms", sa.Integer(), nullable=False),
        sa.Column("credits_spent", sa.Integer(), nullable=False),
        sa.Column("estimated_credits", sa.Integer(), nullable=False),
        sa.Column("estimated_api_cost_usd", sa.Float(), nullable=False),
        sa.Column("input_length", sa.Integer(), nullable=False),
        sa.Column("output_length", sa.Integer(), nullable=False),
        sa.Column("comparison_mode", sa.Boolean(), nullable=False),
        sa.Column("is_custom_prompt", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_playground_usage")),
    )
    op.create_index(
        op.f("ix_playground_usage_user_id"), "playground_usage", ["user_id"]
    )

    op.create_table(
        "anonymous_playground_usage",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("fingerprint_hash", sa.String(length=64), nullable=False),
        sa.Column("ip_subnet", sa.String(), nullable=False),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("current_month", sa.String(length=7), nullable=False),
        sa.Column("usage_count", sa.Integer(), nullable=False),
        sa.Column("package_id", sa.Uuid(), nullable=True),
        sa.Column("model", sa.String(), nullable=True),
        sa.Column("first_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_anonymous_playground_usage")),
        sa.UniqueConstraint(
            "fingerprint_hash",
            "current_month",
            name=op.f("uq_anonymous_playground_usage_fingerprint_hash"),
        ),
    )


def downgrade() -> None:
    op.drop_table("anonymous_playground_usage")
    op.drop_index(op.f("ix_playground_usage_user_id"), table_name="playground_usage")
    op.drop_table("playground_usage")
    op.drop_index(
        op.f("ix_playground_sessions_user_id"), table_name="playground_sessions"
    )
    op.drop_table("playground_sessions")
    op.drop_index(
        op.f("ix_playground_credit_purchases_user_id"),
        table_name="playground_credit_purchases",
    )
    op.drop_table("playground_credit_purchases")
    for column in ("user_id", "transaction_type", "created_at"):
        op.drop_index(
            op.f(f"ix_playground_credit_transactions_{column}"),
            table_name="playground_credit_transactions",
        )
    op.drop_table("playground_credit_transactions")
    op.drop_table("playground_credits")
    op.drop_index(
        op.f("ix_package_versions_package_id"), table_name="package_versions"
    )
    op.drop_table("package_versions")
    op.drop_table("packages")
    op.drop_table("users")
