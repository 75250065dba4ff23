#!/usr/bin/env python3
"""
Initialize default database values.
Run on startup: the default admin account, the achievement catalogue and the
built-in report templates. Existing rows are left untouched.
"""

import asyncio
import logging
import os

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.db import AsyncSessionLocal
from shotspot.database.models import (
    Achievement,
    AchievementCategory,
    ReportTemplate,
    TemplateType,
    User,
    UserRole,
)
from shotspot.services import auth_service

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_USERNAME = os.getenv("DEFAULT_ADMIN_USERNAME", "admin")
DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@shotspot.local")
DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD")

# (name, description, badge, category, criteria, points)
DEFAULT_ACHIEVEMENTS = [
    ("Sharpshooter", "Score 10+ goals in a single game", "target", "shooting", {"min_goals_per_game": 10}, 100),
    ("Perfect Shot", "Achieve 100% shooting accuracy (min 5 shots)", "100", "shooting",
     {"min_fg_percentage": 100, "min_shots": 5}, 150),
    ("Hot Hand", "Score 5 consecutive goals", "fire", "shooting", {"consecutive_goals": 5}, 75),
    ("Long Range Specialist", "Score 5+ goals from 8m+ distance", "rocket", "shooting",
     {"min_goals": 5, "min_distance": 8}, 80),
    ("Zone Master", "Shoot above 70% in all three zones (left/center/right) in a game", "star", "shooting",
     {"min_fg_all_zones": 70, "min_shots_per_zone": 3}, 120),
    ("Iron Man", "Play in 10 consecutive games", "muscle", "consistency", {"consecutive_games": 10}, 50),
    ("Reliable Scorer", "Score at least 5 goals in 5 consecutive games", "medal", "consistency",
     {"min_goals": 5, "consecutive_games": 5}, 100),
    ("Steady Eddie", "Maintain 50%+ FG% for 8 consecutive games (min 8 shots per game)", "chart", "consistency",
     {"min_fg_percentage": 50, "consecutive_games": 8, "min_shots": 8}, 90),
    ("Rising Star", "Improve FG% by 20+ percentage points over 5 games", "rising", "improvement",
     {"fg_improvement": 20, "games_span": 5}, 80),
    ("Comeback Kid", "Score 8+ goals after scoring 2 or fewer in previous game", "hero", "improvement",
     {"min_goals": 8, "previous_max_goals": 2}, 70),
    ("Practice Pays Off", "Increase average shot distance by 2m+ while maintaining 50%+ FG%", "trending",
     "improvement", {"distance_increase": 2, "min_fg_percentage": 50}, 85),
    ("Century Club", "Score 100 career goals", "century", "milestone", {"total_goals": 100}, 200),
    ("500 Shots", "Attempt 500 career shots", "target500", "milestone", {"total_shots": 500}, 150),
    ("Elite Shooter", "Achieve 60%+ career FG% (min 100 shots)", "crown", "milestone",
     {"min_fg_percentage": 60, "min_total_shots": 100}, 250),
    ("Team Player", "Participate in 25 games", "team", "milestone", {"games_played": 25}, 100),
    ("Hat Trick Hero", "Score 3+ goals in 20 different games", "hat", "milestone", {"hat_tricks": 20}, 180),
]

DEFAULT_TEMPLATES = [
    {
        "name": "Summary Report",
        "type": "summary",
        "description": "Quick overview of match results and key statistics",
        "sections": ["game_info", "final_score", "top_scorers", "team_comparison"],
        "metrics": ["total_shots", "field_goal_percentage", "goals", "top_3_players"],
        "branding": {"primary_color": "#1976d2", "secondary_color": "#424242"},
    },
    {
        "name": "Detailed Report",
        "type": "detailed",
        "description": "Comprehensive match analysis with all statistics",
        "sections": [
            "game_info", "final_score", "shot_chart", "player_stats",
            "period_breakdown", "possession_stats", "zone_analysis", "substitutions",
        ],
        "metrics": ["all"],
        "branding": {"primary_color": "#1976d2", "secondary_color": "#424242"},
    },
    {
        "name": "Coach-Focused Report",
        "type": "coach_focused",
        "description": "Tactical insights and player performance for coaches",
        "sections": [
            "game_info", "final_score", "player_performance", "zone_analysis", "hot_cold_zones",
            "trends", "streaks", "substitution_impact", "tactical_notes",
        ],
        "metrics": ["field_goal_percentage", "zone_efficiency", "player_trends", "momentum"],
        "branding": {"primary_color": "#2e7d32", "secondary_color": "#424242"},
    },
    {
        "name": "Season Summary Report",
        "type": "summary",
        "description": "Season-long performance overview",
        "sections": [
            "season_info", "win_loss_record", "total_stats", "player_development",
            "team_progression", "top_performers", "season_highlights",
        ],
        "metrics": ["season_totals", "averages", "improvement_trends"],
        "branding": {"primary_color": "#f57c00", "secondary_color": "#424242"},
    },
]


async def seed_admin(session: AsyncSession) -> bool:
    """Create the default admin when no admin exists. Returns True if one was created."""
    result = await session.execute(select(User.id).where(User.role == UserRole.ADMIN).limit(1))
    if result.first():
        return False

    password = DEFAULT_ADMIN_PASSWORD
    if not password:
        password = auth_service.generate_temporary_password()
        logger.warning(
            f"DEFAULT_ADMIN_PASSWORD not set. Generated a one-time password for '{DEFAULT_ADMIN_USERNAME}': {password}"
        )
    session.add(
        User(
            username=DEFAULT_ADMIN_USERNAME,
            email=DEFAULT_ADMIN_EMAIL,
            password_hash=auth_service.hash_password(password),
            role=UserRole.ADMIN,
            password_must_change=True,
            is_active=True,
        )
    )
    await session.commit()
    logger.info(f"Created default admin '{DEFAULT_ADMIN_USERNAME}' (password change required)")
    return True


async def seed_achievements(session: AsyncSession) -> int:
    existing = set((await session.execute(select(Achievement.name))).scalars().all())
    added = 0
    for name, description, badge, category, criteria, points in DEFAULT_ACHIEVEMENTS:
        if name in existing:
            continue
        session.add(
            Achievement(
                name=name,
                description=description,
                badge_icon=badge,
                category=AchievementCategory(category),
                criteria=criteria,
                points=points,
            )
        )
        added += 1
    await session.commit()
    return added


async def seed_report_templates(session: AsyncSession) -> int:
    existing = set((await session.execute(select(ReportTemplate.name))).scalars().all())
    added = 0
    for template in DEFAULT_TEMPLATES:
        if template["name"] in existing:
            continue
        session.add(
            ReportTemplate(
                name=template["name"],
                type=TemplateType(template["type"]),
                description=template["description"],
                sections=template["sections"],
                metrics=template["metrics"],
                branding=template["branding"],
                is_default=True,
                is_active=True,
            )
        )
        added += 1
    await session.commit()
    return added


async def init_defaults():
    """Initialize default database values."""
    async with AsyncSessionLocal() as session:
        await seed_admin(session)
        achievements = await seed_achievements(session)
        templates = await seed_report_templates(session)
    logger.info(f"Default values initialized ({achievements} achievements, {templates} templates added)")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(init_defaults())
