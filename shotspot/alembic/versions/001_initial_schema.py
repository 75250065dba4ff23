"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00.000000

Initial schema - creates every table from the current models:
- Accounts: users, login_history, settings
- Clubs: clubs, teams, players, trainer_assignments
- Matches: games, game_rosters, game_events, shots, substitutions, timeouts
- Competitions: competitions, competition_teams, tournament_brackets, competition_standings
- Achievements: achievements, player_achievements
- Reports: report_templates, scheduled_reports, report_exports, export_settings
- Twizzit: credentials, sync config/history, team and player mappings
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables from scratch."""
    from shotspot.database.db import Base
    from shotspot.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.create_all(bind=bind, checkfirst=True)


def downgrade() -> None:
    """Drop all tables."""
    from shotspot.database.db import Base
    from shotspot.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.drop_all(bind=bind, checkfirst=True)
