"""
Pydantic models for API request validation.
"""

from datetime import date, datetime
from typing import Optional, List, Dict, Any, Literal

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

Role = Literal["user", "coach", "admin"]
GameStatusValue = Literal["scheduled", "to_reschedule", "in_progress", "completed", "cancelled"]
ShotResultValue = Literal["goal", "miss", "blocked"]
CompetitionTypeValue = Literal["tournament", "league"]
CompetitionStatusValue = Literal["upcoming", "in_progress", "completed", "cancelled"]
TemplateTypeValue = Literal["summary", "detailed", "coach_focused", "custom"]
ScheduleTypeValue = Literal["after_match", "weekly", "monthly", "season_end"]
ExportFormatValue = Literal["pdf", "csv", "json"]


# ---------------------------------------------------------------------------
# Auth and users
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Self-registration. New accounts get the "user" role."""

    username: str = Field(min_length=3, max_length=50)
    email: str = Field(max_length=255)
    password: str

    @field_validator("username")
    @classmethod
    def username_chars(cls, v: str) -> str:
        v = v.strip()
        if not all(c.isalnum() or c in "_-" for c in v):
            raise ValueError("Username may only contain letters, numbers, underscores and hyphens")
        return v


class LoginRequest(BaseModel):
    """Login by username or email."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Dict[str, Any]


class CreateUserRequest(BaseModel):
    """Admin-created account. A temporary password is generated when none is given."""

    username: str = Field(min_length=3, max_length=50)
    email: str = Field(max_length=255)
    role: Role = "user"
    password: Optional[str] = None


class UpdateRoleRequest(BaseModel):
    role: Role


class UpdatePasswordRequest(BaseModel):
    new_password: str
    current_password: Optional[str] = None


class UpdateProfileRequest(BaseModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    email: Optional[str] = Field(default=None, max_length=255)


class BulkRoleChangeRequest(BaseModel):
    user_ids: List[int] = Field(min_length=1)
    role: Role


class TrainerAssignmentCreate(BaseModel):
    user_id: int
    club_id: int
    team_id: Optional[int] = None
    active_from: date
    active_to: Optional[date] = None


# ---------------------------------------------------------------------------
# Clubs, teams, players
# ---------------------------------------------------------------------------


class ClubRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Club name is required")
        return v


class TeamCreate(BaseModel):
    club_id: int
    name: str = Field(min_length=1, max_length=100)
    age_group: Optional[str] = Field(default=None, max_length=20)
    gender: Optional[Literal["male", "female", "mixed"]] = None
    is_active: bool = True


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    age_group: Optional[str] = Field(default=None, max_length=20)
    gender: Optional[Literal["male", "female", "mixed"]] = None
    is_active: Optional[bool] = None


class PlayerCreate(BaseModel):
    club_id: int
    team_id: Optional[int] = None
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    jersey_number: Optional[int] = Field(default=None, ge=1, le=99)
    gender: Optional[Literal["male", "female"]] = None
    position: Optional[str] = Field(default=None, max_length=50)
    is_active: bool = True


class PlayerUpdate(BaseModel):
    club_id: Optional[int] = None
    team_id: Optional[int] = None
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    jersey_number: Optional[int] = Field(default=None, ge=1, le=99)
    gender: Optional[Literal["male", "female"]] = None
    position: Optional[str] = Field(default=None, max_length=50)
    is_active: Optional[bool] = None


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------


class GameCreate(BaseModel):
    home_club_id: int
    away_club_id: int
    home_team_id: Optional[int] = None
    away_team_id: Optional[int] = None
    competition_id: Optional[int] = None
    date: datetime
    number_of_periods: int = Field(default=4, ge=1, le=10)
    period_duration_seconds: int = Field(default=600, ge=60, le=3600)
    home_attacking_side: Optional[Literal["left", "right"]] = None

    @model_validator(mode="after")
    def different_clubs(self):
        if self.home_club_id == self.away_club_id:
            raise ValueError("Home and away clubs must be different")
        return self


class GameUpdate(BaseModel):
    status: Optional[GameStatusValue] = None
    home_score: Optional[int] = Field(default=None, ge=0)
    away_score: Optional[int] = Field(default=None, ge=0)
    date: Optional[datetime] = None
    home_attacking_side: Optional[Literal["left", "right"]] = None
    number_of_periods: Optional[int] = Field(default=None, ge=1, le=10)
    period_duration_seconds: Optional[int] = Field(default=None, ge=60, le=3600)
    home_team_id: Optional[int] = None
    away_team_id: Optional[int] = None
    competition_id: Optional[int] = None


class RescheduleRequest(BaseModel):
    date: Optional[datetime] = None


class RosterPlayer(BaseModel):
    player_id: int
    club_id: int
    is_captain: bool = False
    is_starting: bool = True
    starting_position: Optional[Literal["offense", "defense"]] = None


class RosterReplaceRequest(BaseModel):
    players: List[RosterPlayer]


# ---------------------------------------------------------------------------
# Live match data
# ---------------------------------------------------------------------------


class EventCreate(BaseModel):
    event_type: str = Field(min_length=1, max_length=50)
    club_id: int
    player_id: Optional[int] = None
    period: int = Field(ge=1)
    time_remaining_seconds: Optional[int] = Field(default=None, ge=0)
    details: Optional[Dict[str, Any]] = None


class EventUpdate(BaseModel):
    event_type: Optional[str] = Field(default=None, min_length=1, max_length=50)
    club_id: Optional[int] = None
    player_id: Optional[int] = None
    period: Optional[int] = Field(default=None, ge=1)
    time_remaining_seconds: Optional[int] = Field(default=None, ge=0)
    details: Optional[Dict[str, Any]] = None


class ShotCreate(BaseModel):
    player_id: int
    club_id: int
    x_coord: float
    y_coord: float
    result: ShotResultValue
    period: int = Field(ge=1)
    time_remaining_seconds: Optional[int] = Field(default=None, ge=0)
    shot_type: Optional[str] = Field(default=None, max_length=50)
    distance: Optional[float] = Field(default=None, ge=0)


class ShotUpdate(BaseModel):
    x_coord: Optional[float] = None
    y_coord: Optional[float] = None
    result: Optional[ShotResultValue] = None
    period: Optional[int] = Field(default=None, ge=1)
    time_remaining_seconds: Optional[int] = Field(default=None, ge=0)
    shot_type: Optional[str] = Field(default=None, max_length=50)
    distance: Optional[float] = Field(default=None, ge=0)


class SubstitutionCreate(BaseModel):
    club_id: int
    player_in_id: int
    player_out_id: int
    period: int = Field(ge=1)
    time_remaining_seconds: Optional[int] = Field(default=None, ge=0)
    reason: Literal["tactical", "injury", "fatigue", "disciplinary"] = "tactical"


class TimeoutCreate(BaseModel):
    timeout_type: Literal["team", "injury", "official", "tv"]
    club_id: Optional[int] = None
    period: int = Field(ge=1)
    time_remaining_seconds: Optional[int] = Field(default=None, ge=0)
    duration_seconds: int = Field(default=60, ge=1, le=600)
    reason: Optional[str] = None
    called_by: Optional[str] = Field(default=None, max_length=100)


class PossessionCreate(BaseModel):
    club_id: int
    period: int = Field(ge=1, le=10)


class PossessionEnd(BaseModel):
    result: Literal["goal", "turnover", "out_of_bounds", "timeout", "period_end"]


class SetPeriodRequest(BaseModel):
    period: int = Field(ge=1)


class SetDurationRequest(BaseModel):
    minutes: int


# ---------------------------------------------------------------------------
# Competitions
# ---------------------------------------------------------------------------


class CompetitionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    competition_type: CompetitionTypeValue
    start_date: date
    end_date: Optional[date] = None
    status: CompetitionStatusValue = "upcoming"
    settings: Optional[Dict[str, Any]] = None
    description: Optional[str] = None
    is_official: bool = False


class CompetitionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    competition_type: Optional[CompetitionTypeValue] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[CompetitionStatusValue] = None
    settings: Optional[Dict[str, Any]] = None
    description: Optional[str] = None
    is_official: Optional[bool] = None


class CompetitionTeamAdd(BaseModel):
    team_id: int
    seed: Optional[int] = Field(default=None, ge=1)
    group_name: Optional[str] = Field(default=None, max_length=50)


class BracketMatchUpdate(BaseModel):
    game_id: Optional[int] = None
    scheduled_date: Optional[str] = None
    winner_team_id: Optional[int] = None


class StandingsUpdateRequest(BaseModel):
    game_id: int


# ---------------------------------------------------------------------------
# Reports and exports
# ---------------------------------------------------------------------------


class ExportFromTemplateRequest(BaseModel):
    template_id: int
    data_type: Literal["game", "team"] = "game"
    game_id: Optional[int] = None
    team_id: Optional[int] = None
    format: Optional[ExportFormatValue] = None

    @model_validator(mode="after")
    def target_present(self):
        if self.data_type == "game" and self.game_id is None:
            raise ValueError("game_id is required for game exports")
        if self.data_type == "team" and self.team_id is None:
            raise ValueError("team_id is required for team exports")
        return self


class ReportTemplateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: TemplateTypeValue = "custom"
    description: Optional[str] = Field(default=None, max_length=500)
    sections: List[str] = Field(default_factory=list)
    metrics: List[str] = Field(default_factory=list)
    branding: Optional[Dict[str, Any]] = None
    language: str = Field(default="en", max_length=10)
    date_format: str = Field(default="YYYY-MM-DD", max_length=20)
    time_format: Literal["12h", "24h"] = "24h"
    is_active: bool = True


class ReportTemplateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[TemplateTypeValue] = None
    description: Optional[str] = Field(default=None, max_length=500)
    sections: Optional[List[str]] = None
    metrics: Optional[List[str]] = None
    branding: Optional[Dict[str, Any]] = None
    language: Optional[str] = Field(default=None, max_length=10)
    date_format: Optional[str] = Field(default=None, max_length=20)
    time_format: Optional[Literal["12h", "24h"]] = None
    is_active: Optional[bool] = None


class ScheduledReportCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    template_id: int
    schedule_type: ScheduleTypeValue
    team_id: Optional[int] = None
    game_filters: Optional[Dict[str, Any]] = None
    send_email: bool = False
    email_recipients: Optional[List[str]] = None
    email_subject: Optional[str] = Field(default=None, max_length=200)
    email_body: Optional[str] = None


class ScheduledReportUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    template_id: Optional[int] = None
    schedule_type: Optional[ScheduleTypeValue] = None
    is_active: Optional[bool] = None
    team_id: Optional[int] = None
    game_filters: Optional[Dict[str, Any]] = None
    send_email: Optional[bool] = None
    email_recipients: Optional[List[str]] = None
    email_subject: Optional[str] = Field(default=None, max_length=200)
    email_body: Optional[str] = None


class ExportSettingsUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    default_format: Optional[ExportFormatValue] = None
    default_template_id: Optional[int] = None
    anonymize_opponents: Optional[bool] = None
    include_sensitive_data: Optional[bool] = None
    auto_delete_after_days: Optional[int] = None
    allow_public_sharing: Optional[bool] = None
    allowed_share_roles: Optional[List[Role]] = None


# ---------------------------------------------------------------------------
# Twizzit and settings
# ---------------------------------------------------------------------------


class TwizzitCredentialCreate(BaseModel):
    organization_name: str = Field(min_length=1, max_length=255)
    api_username: str = Field(min_length=1, max_length=255)
    api_password: str = Field(min_length=1)
    api_endpoint: Optional[str] = Field(default=None, max_length=500)

    @field_validator("api_endpoint")
    @classmethod
    def endpoint_is_url(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError("API endpoint must be a valid URL")
        return v


class TwizzitSyncOptions(BaseModel):
    include_players: bool = False


class TwizzitSyncConfigUpdate(BaseModel):
    sync_teams: Optional[bool] = None
    sync_players: Optional[bool] = None
    sync_competitions: Optional[bool] = None
    sync_interval_minutes: Optional[int] = Field(default=None, ge=1, le=1440)
    auto_sync_enabled: Optional[bool] = None


class SettingUpdate(BaseModel):
    value: Any
