from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_crabs_and_airdrops"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "crabs",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("username", sa.String(length=30), nullable=False),
        sa.Column("display_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("bio", sa.Text(), nullable=False, server_default=""),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("api_key_hash", sa.Text(), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verification_code", sa.String(length=64), nullable=True),
        sa.Column("twitter_handle", sa.String(length=64), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("solana_wallet", sa.String(length=128), nullable=True),
        sa.Column("airdrop_tx", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("username", name="uq_crabs_username"),
        sa.UniqueConstraint("verification_code", name="uq_crabs_verification_code"),
        sa.UniqueConstraint("api_key_hash", name="uq_crabs_api_key_hash"),
    )
    op.create_index("ix_crabs_solana_wallet", "crabs", ["solana_wallet"])

    op.create_table(
        "airdrop_reservations",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("wallet", sa.String(length=128), nullable=False),
        sa.Column("crab_id", sa.String(), sa.ForeignKey("crabs.id"), nullable=False),
        sa.Column("username", sa.String(length=30), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="reserved"),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("token_mint", sa.String(length=128), nullable=False),
        sa.Column("tx_handle", sa.String(length=200), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column(
            "executor_response",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("wallet", name="uq_airdrop_reservation_wallet"),
    )
    op.create_index("ix_airdrop_reservations_crab_id", "airdrop_reservations", ["crab_id"])
    op.create_index("ix_airdrop_reservations_status", "airdrop_reservations", ["status"])

    op.create_table(
        "airdrop_budget",
        sa.Column("id", sa.String(length=40), primary_key=True, nullable=False),
        sa.Column("total", sa.Integer(), nullable=False),
        sa.Column("remaining", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.text("now()")),
        sa.CheckConstraint("remaining >= 0", name="ck_airdrop_budget_remaining_non_negative"),
    )


def downgrade():
    op.drop_table("airdrop_budget")

    op.drop_index("ix_airdrop_reservations_status", table_name="airdrop_reservations")
    op.drop_index("ix_airdrop_reservations_crab_id", table_name="airdrop_reservations")
    op.drop_table("airdrop_reservations")

    op.drop_index("ix_crabs_solana_wallet", table_name="crabs")
    op.drop_table("crabs")
