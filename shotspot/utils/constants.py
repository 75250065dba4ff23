"""
Constants used across the match tracking system.
"""

# Roles that may manage clubs, teams, games and live events
STAFF_ROLES = ("admin", "coach")
ALL_ROLES = ("user", "coach", "admin")

# Password policy
MIN_PASSWORD_LENGTH = 8
PASSWORD_SPECIAL_CHARACTERS = "@$!%*?&#^()_-+=[]{};:'\",.<>/\\|`~"

# Game defaults
DEFAULT_NUMBER_OF_PERIODS = 4
MAX_NUMBER_OF_PERIODS = 10
DEFAULT_PERIOD_DURATION_SECONDS = 600
MIN_PERIOD_DURATION_MINUTES = 1
MAX_PERIOD_DURATION_MINUTES = 60
DEFAULT_TIMEOUT_DURATION_SECONDS = 60

# Event catalogue
EVENT_TYPES = (
    "foul",
    "substitution",
    "timeout",
    "period_start",
    "period_end",
    "fault_offensive",
    "fault_defensive",
    "fault_out_of_bounds",
    "free_shot",
    "timeout_team",
    "timeout_injury",
    "timeout_official",
    "match_commentary",
)

FAULT_REASONS = (
    "running_with_ball",
    "hindering_shot",
    "ball_out",
    "traveling",
    "offensive_foul",
    "defensive_foul",
    "illegal_contact",
    "out_of_bounds",
    "shot_clock_violation",
    "technical_foul",
)

# Standings
POINTS_FOR_WIN = 3
POINTS_FOR_DRAW = 1
POINTS_FOR_LOSS = 0
FORM_LENGTH = 5

# Leaderboard minimums
SEASON_LEADERBOARD_MIN_SHOTS = 10
TEAM_LEADERBOARD_MIN_SHOTS = 5

# Twizzit
TWIZZIT_DEFAULT_API_ENDPOINT = "https://app.twizzit.com"
TWIZZIT_TOKEN_DEFAULT_TTL_SECONDS = 86400
TWIZZIT_TOKEN_REFRESH_MARGIN_SECONDS = 300
TWIZZIT_DEFAULT_SYNC_INTERVAL_MINUTES = 60

# Export settings defaults
DEFAULT_EXPORT_FORMAT = "pdf"
DEFAULT_SHARE_ROLES = ["coach", "admin"]
