"""add_possessions_and_standing_games

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 18:00:00.000000

Add ball_possessions (possession tracking per game) and
competition_standing_games (games already counted in league standings).
Databases created from 001 after these models existed already have both.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(conn, table_name: str) -> bool:
    return sa.inspect(conn).has_table(table_name)


def upgrade() -> None:
    """Create the possession and standings ledger tables."""
    from shotspot.database.models import Possession, StandingGame

    conn = op.get_bind()
    for model in (Possession, StandingGame):
        if not _table_exists(conn, model.__tablename__):
            model.__table__.create(bind=conn, checkfirst=True)


def downgrade() -> None:
    """Drop the possession and standings ledger tables."""
    conn = op.get_bind()
    for table_name in ("competition_standing_games", "ball_possessions"):
        if _table_exists(conn, table_name):
            op.drop_table(table_name)
    if conn.dialect.name == "postgresql":
        op.execute("DROP TYPE IF EXISTS possession_result")
