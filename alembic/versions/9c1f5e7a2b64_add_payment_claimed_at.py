"""add_payment_claimed_at

Revision ID: 9c1f5e7a2b64
Revises: 4b7e2c9d1a03
Create Date: 2026-10-18 14:40:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '9c1f5e7a2b64'
down_revision: Union[str, Sequence[str], None] = '4b7e2c9d1a03'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema - Add in-flight marker to payments."""
    with op.batch_alter_table('payments') as batch_op:
        batch_op.add_column(
            sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True)
        )


def downgrade() -> None:
    """Downgrade schema - Remove in-flight marker from payments."""
    with op.batch_alter_table('payments') as batch_op:
        batch_op.drop_column('claimed_at')
