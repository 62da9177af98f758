"""recording diarization_source

Revision ID: 7b2c9d4e5f60
Revises: 4e1f0a2b9c3d
Create Date: 2026-10-06 16:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "7b2c9d4e5f60"
down_revision: Union[str, Sequence[str], None] = "4e1f0a2b9c3d"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Record which ASR representation (words/paragraphs) produced the speakers."""
    op.add_column(
        "recording",
        sa.Column("diarization_source", sa.String(length=32), nullable=True),
    )


def downgrade() -> None:
    """Drop recording.diarization_source."""
    op.drop_column("recording", "diarization_source")
