"""discount_combined_gating

Revision ID: c3f8b1e6a027
Revises: a1c4e7d20b55
Create Date: 2026-10-19 10:30:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "c3f8b1e6a027"
down_revision: str | None = "a1c4e7d20b55"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

_GATING_TYPES_BEFORE = (
    "'none','token_balance','staking_balance','club_membership',"
    "'whitelist_user','whitelist_wallet','contract_holding'"
)
_GATING_TYPES_AFTER = _GATING_TYPES_BEFORE + ",'combined'"


def upgrade() -> None:
    op.add_column(
        "discount_codes",
        sa.Column(
            "gating_config",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
    )
    op.drop_constraint("ck_discount_codes_gating_type", "discount_codes", type_="check")
    op.create_check_constraint(
        "ck_discount_codes_gating_type",
        "discount_codes",
        f"gating_type IN ({_GATING_TYPES_AFTER})",
    )


def downgrade() -> None:
    op.execute("UPDATE discount_codes SET gating_type = 'none' WHERE gating_type = 'combined'")
    op.drop_constraint("ck_discount_codes_gating_type", "discount_codes", type_="check")
    op.create_check_constraint(
        "ck_discount_codes_gating_type",
        "discount_codes",
        f"gating_type IN ({_GATING_TYPES_BEFORE})",
    )
    op.drop_column("discount_codes", "gating_config")
