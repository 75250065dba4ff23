"""
SQLAlchemy ORM models for the ShotSpot match tracking system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    JSON,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from shotspot.database.db import Base
from shotspot.utils.datetime_utils import utcnow

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite test database)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _enum(enum_cls, name: str) -> Enum:
    """Enum column type that stores the lower-case values rather than member names."""
    return Enum(enum_cls, name=name, values_callable=lambda x: [e.value for e in x])


class UserRole(str, enum.Enum):
    """User role enum."""

    USER = "user"
    COACH = "coach"
    ADMIN = "admin"


class TeamGender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    MIXED = "mixed"


class PlayerGender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"


class GameStatus(str, enum.Enum):
    """Game lifecycle status enum."""

    SCHEDULED = "scheduled"
    TO_RESCHEDULE = "to_reschedule"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TimerState(str, enum.Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class AttackingSide(str, enum.Enum):
    LEFT = "left"
    RIGHT = "right"


class StartingPosition(str, enum.Enum):
    OFFENSE = "offense"
    DEFENSE = "defense"


class ShotResult(str, enum.Enum):
    GOAL = "goal"
    MISS = "miss"
    BLOCKED = "blocked"


class SubstitutionReason(str, enum.Enum):
    TACTICAL = "tactical"
    INJURY = "injury"
    FATIGUE = "fatigue"
    DISCIPLINARY = "disciplinary"


class TimeoutType(str, enum.Enum):
    TEAM = "team"
    INJURY = "injury"
    OFFICIAL = "official"
    TV = "tv"


class PossessionResult(str, enum.Enum):
    GOAL = "goal"
    TURNOVER = "turnover"
    OUT_OF_BOUNDS = "out_of_bounds"
    TIMEOUT = "timeout"
    PERIOD_END = "period_end"


class CompetitionType(str, enum.Enum):
    TOURNAMENT = "tournament"
    LEAGUE = "league"


class CompetitionStatus(str, enum.Enum):
    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BracketStatus(str, enum.Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class AchievementCategory(str, enum.Enum):
    SHOOTING = "shooting"
    CONSISTENCY = "consistency"
    IMPROVEMENT = "improvement"
    MILESTONE = "milestone"


class TemplateType(str, enum.Enum):
    SUMMARY = "summary"
    DETAILED = "detailed"
    COACH_FOCUSED = "coach_focused"
    CUSTOM = "custom"


class ScheduleType(str, enum.Enum):
    AFTER_MATCH = "after_match"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    SEASON_END = "season_end"


class ExportFormat(str, enum.Enum):
    PDF = "pdf"
    CSV = "csv"
    JSON = "json"


ExportFormatType = _enum(ExportFormat, "export_format")


class SyncHistoryStatus(str, enum.Enum):
    """Outcome of a Twizzit sync run."""

    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"


class MappingSyncStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


MappingSyncStatusType = _enum(MappingSyncStatus, "mapping_sync_status")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Application users. Role drives authorization."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(_enum(UserRole, "user_role"), default=UserRole.USER, nullable=False)
    password_must_change = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    __table_args__ = (
        Index("idx_users_role", "role"),
    )


class LoginHistory(Base):
    """One row per login attempt, successful or not."""

    __tablename__ = "login_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    username = Column(String(255), nullable=False)
    success = Column(Boolean, nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    error_message = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("idx_login_history_user", "user_id"),
    )


class Setting(Base):
    """Key/value runtime settings (database overrides for env vars)."""

    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)


# ---------------------------------------------------------------------------
# Clubs, teams, players
# ---------------------------------------------------------------------------


class Club(Base):
    """Clubs field age-group teams and own players."""

    __tablename__ = "clubs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    club_id = Column(Integer, ForeignKey("clubs.id"), nullable=False)
    name = Column(String(100), nullable=False)
    age_group = Column(String(20), nullable=True)
    gender = Column(_enum(TeamGender, "team_gender"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("club_id", "name", name="uq_teams_club_name"),
        Index("idx_teams_club", "club_id"),
    )


class Player(Base):
    """Players belong to a club and optionally to one of its teams."""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    club_id = Column(Integer, ForeignKey("clubs.id"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    jersey_number = Column(Integer, nullable=True)
    gender = Column(_enum(PlayerGender, "player_gender"), nullable=True)
    position = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("team_id", "jersey_number", name="uq_players_team_jersey"),
        CheckConstraint(
            "jersey_number IS NULL OR (jersey_number >= 1 AND jersey_number <= 99)",
            name="ck_players_jersey_range",
        ),
        Index("idx_players_club", "club_id"),
        Index("idx_players_team", "team_id"),
    )


class TrainerAssignment(Base):
    """Coach access to a club (and optionally one team) for a date range."""

    __tablename__ = "trainer_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    club_id = Column(Integer, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=True)
    active_from = Column(Date, nullable=False)
    active_to = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "active_to IS NULL OR active_to >= active_from",
            name="ck_trainer_assignments_dates",
        ),
        Index("idx_trainer_assignments_user", "user_id"),
    )


# ---------------------------------------------------------------------------
# Games and live events
# ---------------------------------------------------------------------------


class Game(Base):
    """A match between two clubs, with its clock state."""

    __tablename__ = "games"

    id = Column(Integer, primary_key=True, autoincrement=True)
    home_club_id = Column(Integer, ForeignKey("clubs.id"), nullable=False)
    away_club_id = Column(Integer, ForeignKey("clubs.id"), nullable=False)
    home_team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    away_team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    competition_id = Column(
        Integer, ForeignKey("competitions.id", ondelete="SET NULL"), nullable=True
    )
    date = Column(DateTime(timezone=True), nullable=False)
    status = Column(_enum(GameStatus, "game_status"), default=GameStatus.SCHEDULED, nullable=False)
    home_score = Column(Integer, default=0, nullable=False)
    away_score = Column(Integer, default=0, nullable=False)
    home_attacking_side = Column(_enum(AttackingSide, "attacking_side"), nullable=True)
    number_of_periods = Column(Integer, default=4, nullable=False)
    current_period = Column(Integer, default=1, nullable=False)
    period_duration_seconds = Column(Integer, default=600, nullable=False)
    time_remaining_seconds = Column(Integer, nullable=True)
    timer_state = Column(_enum(TimerState, "timer_state"), default=TimerState.STOPPED, nullable=False)
    timer_started_at = Column(DateTime(timezone=True), nullable=True)
    timer_paused_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("home_club_id <> away_club_id", name="ck_games_different_clubs"),
        CheckConstraint(
            "number_of_periods >= 1 AND number_of_periods <= 10", name="ck_games_periods_range"
        ),
        Index("idx_games_status", "status"),
        Index("idx_games_date", "date"),
        Index("idx_games_competition", "competition_id"),
    )


class GameRoster(Base):
    """Players selected for a game, per club."""

    __tablename__ = "game_rosters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    club_id = Column(Integer, ForeignKey("clubs.id"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    is_captain = Column(Boolean, default=False, nullable=False)
    is_starting = Column(Boolean, default=True, nullable=False)
    starting_position = Column(_enum(StartingPosition, "starting_position"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("game_id", "player_id", name="uq_game_rosters_game_player"),
        Index("idx_game_rosters_game", "game_id"),
    )


class GameEvent(Base):
    __tablename__ = "game_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    event_type = Column(String(50), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="SET NULL"), nullable=True)
    club_id = Column(Integer, ForeignKey("clubs.id"), nullable=True)
    period = Column(Integer, nullable=False)
    time_remaining_seconds = Column(Integer, nullable=True)
    details = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("idx_game_events_game", "game_id"),
        Index("idx_game_events_type", "event_type"),
    )


class Shot(Base):
    """A shot on goal with its court coordinates (0-100 on both axes)."""

    __tablename__ = "shots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    club_id = Column(Integer, ForeignKey("clubs.id"), nullable=False)
    x_coord = Column(Float, nullable=False)
    y_coord = Column(Float, nullable=False)
    result = Column(_enum(ShotResult, "shot_result"), nullable=False)
    period = Column(Integer, nullable=False)
    time_remaining_seconds = Column(Integer, nullable=True)
    shot_type = Column(String(50), nullable=True)
    distance = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint("x_coord >= 0 AND x_coord <= 100", name="ck_shots_x_range"),
        CheckConstraint("y_coord >= 0 AND y_coord <= 100", name="ck_shots_y_range"),
        Index("idx_shots_game", "game_id"),
        Index("idx_shots_player", "player_id"),
    )


class Substitution(Base):
    __tablename__ = "substitutions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    club_id = Column(Integer, ForeignKey("clubs.id"), nullable=False)
    player_in_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    player_out_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    period = Column(Integer, nullable=False)
    time_remaining_seconds = Column(Integer, nullable=True)
    reason = Column(
        _enum(SubstitutionReason, "substitution_reason"),
        default=SubstitutionReason.TACTICAL,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint("player_in_id <> player_out_id", name="ck_substitutions_different_players"),
        Index("idx_substitutions_game", "game_id"),
    )


class Timeout(Base):
    __tablename__ = "timeouts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    club_id = Column(Integer, ForeignKey("clubs.id"), nullable=True)
    timeout_type = Column(_enum(TimeoutType, "timeout_type"), nullable=False)
    period = Column(Integer, nullable=False)
    time_remaining_seconds = Column(Integer, nullable=True)
    duration_seconds = Column(Integer, default=60, nullable=False)
    reason = Column(Text, nullable=True)
    called_by = Column(String(100), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint("period >= 1 AND period <= 10", name="ck_timeouts_period_range"),
        Index("idx_timeouts_game", "game_id"),
    )


class Possession(Base):
    """A ball possession: starts when the ball crosses the center line."""

    __tablename__ = "ball_possessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    club_id = Column(Integer, ForeignKey("clubs.id"), nullable=False)
    period = Column(Integer, nullable=False)
    started_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    shots_taken = Column(Integer, default=0, server_default="0", nullable=False)
    result = Column(_enum(PossessionResult, "possession_result"), nullable=True)

    __table_args__ = (
        CheckConstraint("period >= 1 AND period <= 10", name="ck_possessions_period_range"),
        CheckConstraint("shots_taken >= 0", name="ck_possessions_shots"),
        Index("idx_possessions_game", "game_id"),
    )


# ---------------------------------------------------------------------------
# Competitions
# ---------------------------------------------------------------------------


class Competition(Base):
    __tablename__ = "competitions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    competition_type = Column(_enum(CompetitionType, "competition_type"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    status = Column(
        _enum(CompetitionStatus, "competition_status"),
        default=CompetitionStatus.UPCOMING,
        nullable=False,
    )
    settings = Column(JSONType, nullable=True)
    description = Column(Text, nullable=True)
    is_official = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)


class CompetitionTeam(Base):
    __tablename__ = "competition_teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    competition_id = Column(
        Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False
    )
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    seed = Column(Integer, nullable=True)
    group_name = Column(String(50), nullable=True)
    is_eliminated = Column(Boolean, default=False, nullable=False)
    elimination_round = Column(Integer, nullable=True)
    final_rank = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("competition_id", "team_id", name="uq_competition_teams_pair"),
    )


class TournamentBracket(Base):
    """One match slot in a single-elimination bracket."""

    __tablename__ = "tournament_brackets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    competition_id = Column(
        Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False
    )
    round_number = Column(Integer, nullable=False)
    round_name = Column(String(50), nullable=False)
    match_number = Column(Integer, nullable=False)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="SET NULL"), nullable=True)
    home_team_id = Column(Integer, ForeignKey("teams.id"), nullable=True)
    away_team_id = Column(Integer, ForeignKey("teams.id"), nullable=True)
    winner_team_id = Column(Integer, ForeignKey("teams.id"), nullable=True)
    next_bracket_id = Column(
        Integer, ForeignKey("tournament_brackets.id", ondelete="SET NULL"), nullable=True
    )
    scheduled_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(
        _enum(BracketStatus, "bracket_status"), default=BracketStatus.PENDING, nullable=False
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "competition_id", "round_number", "match_number", name="uq_brackets_round_match"
        ),
    )


class CompetitionStanding(Base):
    __tablename__ = "competition_standings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    competition_id = Column(
        Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False
    )
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    games_played = Column(Integer, default=0, nullable=False)
    wins = Column(Integer, default=0, nullable=False)
    draws = Column(Integer, default=0, nullable=False)
    losses = Column(Integer, default=0, nullable=False)
    goals_for = Column(Integer, default=0, nullable=False)
    goals_against = Column(Integer, default=0, nullable=False)
    points = Column(Integer, default=0, nullable=False)
    rank = Column(Integer, nullable=True)
    form = Column(String(5), nullable=True)  # newest result first
    home_wins = Column(Integer, default=0, nullable=False)
    home_draws = Column(Integer, default=0, nullable=False)
    home_losses = Column(Integer, default=0, nullable=False)
    away_wins = Column(Integer, default=0, nullable=False)
    away_draws = Column(Integer, default=0, nullable=False)
    away_losses = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("competition_id", "team_id", name="uq_standings_competition_team"),
    )


class StandingGame(Base):
    """A game already counted in a competition's standings."""

    __tablename__ = "competition_standing_games"

    id = Column(Integer, primary_key=True, autoincrement=True)
    competition_id = Column(
        Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False
    )
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    counted_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("competition_id", "game_id", name="uq_standing_games_pair"),
    )


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


class Achievement(Base):
    __tablename__ = "achievements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=False)
    badge_icon = Column(String(20), nullable=True)
    category = Column(_enum(AchievementCategory, "achievement_category"), nullable=False)
    criteria = Column(JSONType, nullable=False)
    points = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class PlayerAchievement(Base):
    __tablename__ = "player_achievements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    achievement_id = Column(
        Integer, ForeignKey("achievements.id", ondelete="CASCADE"), nullable=False
    )
    game_id = Column(Integer, ForeignKey("games.id", ondelete="SET NULL"), nullable=True)
    earned_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    details = Column("metadata", JSONType, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "player_id", "achievement_id", "game_id", name="uq_player_achievements_award"
        ),
        Index("idx_player_achievements_player", "player_id"),
    )


# ---------------------------------------------------------------------------
# Reports and exports
# ---------------------------------------------------------------------------


class ReportTemplate(Base):
    __tablename__ = "report_templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    type = Column(_enum(TemplateType, "template_type"), nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    description = Column(String(500), nullable=True)
    sections = Column(JSONType, nullable=False, default=list)
    metrics = Column(JSONType, nullable=False, default=list)
    branding = Column(JSONType, nullable=True)
    language = Column(String(10), default="en", nullable=False)
    date_format = Column(String(20), default="YYYY-MM-DD", nullable=False)
    time_format = Column(String(10), default="24h", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)


class ScheduledReport(Base):
    __tablename__ = "scheduled_reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    template_id = Column(
        Integer, ForeignKey("report_templates.id", ondelete="CASCADE"), nullable=False
    )
    schedule_type = Column(_enum(ScheduleType, "schedule_type"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    game_filters = Column(JSONType, nullable=True)
    send_email = Column(Boolean, default=False, nullable=False)
    email_recipients = Column(JSONType, nullable=True)
    email_subject = Column(String(200), nullable=True)
    email_body = Column(Text, nullable=True)
    last_run_at = Column(DateTime(timezone=True), nullable=True)
    next_run_at = Column(DateTime(timezone=True), nullable=True)
    run_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)


class ReportExport(Base):
    """A generated report, kept for later download."""

    __tablename__ = "report_exports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    template_id = Column(
        Integer, ForeignKey("report_templates.id", ondelete="SET NULL"), nullable=True
    )
    generated_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    report_name = Column(String(200), nullable=False)
    report_type = Column(String(50), nullable=False)
    format = Column(ExportFormatType, nullable=False)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="SET NULL"), nullable=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    content = Column(Text, nullable=True)
    file_size_bytes = Column(Integer, nullable=True)
    file_hash = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("idx_report_exports_generated_by", "generated_by"),
    )


class ExportSettings(Base):
    __tablename__ = "export_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    default_format = Column(
        ExportFormatType, default=ExportFormat.PDF, nullable=False
    )
    default_template_id = Column(
        Integer, ForeignKey("report_templates.id", ondelete="SET NULL"), nullable=True
    )
    anonymize_opponents = Column(Boolean, default=False, nullable=False)
    include_sensitive_data = Column(Boolean, default=True, nullable=False)
    auto_delete_after_days = Column(Integer, nullable=True)
    allow_public_sharing = Column(Boolean, default=False, nullable=False)
    allowed_share_roles = Column(JSONType, nullable=False, default=lambda: ["coach", "admin"])
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)


# ---------------------------------------------------------------------------
# Twizzit integration
# ---------------------------------------------------------------------------


class TwizzitCredential(Base):
    """API credentials for a Twizzit organization; password stored encrypted."""

    __tablename__ = "twizzit_credentials"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_name = Column(String(255), nullable=False)
    api_username = Column(String(255), nullable=False)
    encrypted_password = Column(Text, nullable=False)  # iv:tag:ciphertext, hex
    api_endpoint = Column(String(500), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)


class TwizzitSyncConfig(Base):
    __tablename__ = "twizzit_sync_config"

    id = Column(Integer, primary_key=True, autoincrement=True)
    credential_id = Column(
        Integer,
        ForeignKey("twizzit_credentials.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    sync_teams = Column(Boolean, default=True, nullable=False)
    sync_players = Column(Boolean, default=True, nullable=False)
    sync_competitions = Column(Boolean, default=False, nullable=False)
    sync_interval_minutes = Column(Integer, default=60, nullable=False)
    auto_sync_enabled = Column(Boolean, default=False, nullable=False)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    next_sync_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "sync_interval_minutes >= 1 AND sync_interval_minutes <= 1440",
            name="ck_twizzit_sync_interval_range",
        ),
    )


class TwizzitSyncHistory(Base):
    __tablename__ = "twizzit_sync_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    credential_id = Column(
        Integer, ForeignKey("twizzit_credentials.id", ondelete="CASCADE"), nullable=False
    )
    sync_type = Column(String(50), nullable=False)
    sync_direction = Column(String(20), default="import", nullable=False)
    status = Column(
        _enum(SyncHistoryStatus, "sync_history_status"),
        default=SyncHistoryStatus.IN_PROGRESS,
        nullable=False,
    )
    items_processed = Column(Integer, default=0, nullable=False)
    items_succeeded = Column(Integer, default=0, nullable=False)
    items_failed = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_twizzit_sync_history_credential", "credential_id"),
    )


class TwizzitTeamMapping(Base):
    """Links a Twizzit group to a local club."""

    __tablename__ = "twizzit_team_mappings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    local_club_id = Column(Integer, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False)
    twizzit_team_id = Column(String(100), nullable=False, unique=True)
    twizzit_team_name = Column(String(255), nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    sync_status = Column(
        MappingSyncStatusType,
        default=MappingSyncStatus.PENDING,
        nullable=False,
    )
    sync_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class TwizzitPlayerMapping(Base):
    """Links a Twizzit contact to a local player."""

    __tablename__ = "twizzit_player_mappings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    local_player_id = Column(
        Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    twizzit_player_id = Column(String(100), nullable=False, unique=True)
    twizzit_player_name = Column(String(255), nullable=True)
    team_mapping_id = Column(
        Integer, ForeignKey("twizzit_team_mappings.id", ondelete="SET NULL"), nullable=True
    )
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    sync_status = Column(
        MappingSyncStatusType,
        default=MappingSyncStatus.PENDING,
        nullable=False,
    )
    sync_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
