"""
Match and report exports.

Direct exports (match CSV/JSON, games CSV) are built on request and streamed
back. Template exports are generated immediately and stored in
``report_exports`` so they can be listed and downloaded later.
"""

import csv
import hashlib
import io
import json
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import (
    Club,
    ExportFormat,
    Game,
    GameEvent,
    GameRoster,
    GameStatus,
    Player,
    ReportExport,
    ReportTemplate,
    Shot,
    ShotResult,
    Substitution,
    Team,
    Timeout,
)
from shotspot.services import game_service
from shotspot.services.analytics_service import court_zone, fg_percentage
from shotspot.utils.datetime_utils import isoformat, utcnow
from shotspot.utils.errors import NotFoundError

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    ExportFormat.CSV: "text/csv",
    ExportFormat.JSON: "application/json",
    ExportFormat.PDF: "application/json",
}

RECENT_EXPORTS_LIMIT = 50


def _csv_section(title: str, headers: List[str], rows: List[List]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    output.write(f"=== {title} ===\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    return output.getvalue()


def _full_name(player: Optional[Player]) -> Optional[str]:
    if player is None:
        return None
    return f"{player.first_name} {player.last_name}"


class MatchData:
    """Everything recorded for one game, loaded once and shared by the exporters."""

    def __init__(self, game: Game, names: Dict, clubs: Dict[int, str], players: Dict[int, Player],
                 roster: List[GameRoster], shots: List[Shot], substitutions: List[Substitution],
                 timeouts: List[Timeout], events: List[GameEvent]):
        self.game = game
        self.names = names
        self.clubs = clubs
        self.players = players
        self.roster = roster
        self.shots = shots
        self.substitutions = substitutions
        self.timeouts = timeouts
        self.events = events

    @property
    def home_name(self) -> str:
        return self.names.get("home_club_name") or self.names.get("home_team_name") or "Home"

    @property
    def away_name(self) -> str:
        return self.names.get("away_club_name") or self.names.get("away_team_name") or "Away"

    def player_stats(self) -> List[Dict]:
        stats: Dict[int, Dict] = {}

        def _entry(player_id: int, club_id: int) -> Dict:
            if player_id not in stats:
                player = self.players.get(player_id)
                stats[player_id] = {
                    "player_id": player_id,
                    "player_name": _full_name(player),
                    "jersey_number": player.jersey_number if player else None,
                    "club_id": club_id,
                    "club_name": self.clubs.get(club_id),
                    "is_captain": False,
                    "is_starting": False,
                    "shots": 0,
                    "goals": 0,
                    "misses": 0,
                    "blocked": 0,
                }
            return stats[player_id]

        for entry in self.roster:
            row = _entry(entry.player_id, entry.club_id)
            row["is_captain"] = entry.is_captain
            row["is_starting"] = entry.is_starting
        for shot in self.shots:
            row = _entry(shot.player_id, shot.club_id)
            row["shots"] += 1
            if shot.result == ShotResult.GOAL:
                row["goals"] += 1
            elif shot.result == ShotResult.MISS:
                row["misses"] += 1
            else:
                row["blocked"] += 1
        for row in stats.values():
            row["fg_percentage"] = fg_percentage(row["goals"], row["shots"])
        return sorted(stats.values(), key=lambda r: (r["club_name"] or "", -r["goals"], r["jersey_number"] or 0))

    def club_totals(self) -> Dict[str, Dict]:
        totals = {}
        for side, club_id in (("home", self.game.home_club_id), ("away", self.game.away_club_id)):
            club_shots = [s for s in self.shots if s.club_id == club_id]
            goals = sum(1 for s in club_shots if s.result == ShotResult.GOAL)
            distances = [s.distance for s in club_shots if s.distance is not None]
            totals[side] = {
                "club_id": club_id,
                "club_name": self.clubs.get(club_id),
                "shots": len(club_shots),
                "goals": goals,
                "fg_percentage": fg_percentage(goals, len(club_shots)),
                "avg_distance": round(sum(distances) / len(distances), 2) if distances else None,
                "substitutions": sum(1 for s in self.substitutions if s.club_id == club_id),
                "timeouts": sum(1 for t in self.timeouts if t.club_id == club_id),
            }
        return totals

    def period_breakdown(self) -> List[Dict]:
        periods = []
        for period in range(1, (self.game.number_of_periods or 1) + 1):
            row = {"period": period}
            for side, club_id in (("home", self.game.home_club_id), ("away", self.game.away_club_id)):
                period_shots = [s for s in self.shots if s.period == period and s.club_id == club_id]
                row[f"{side}_shots"] = len(period_shots)
                row[f"{side}_goals"] = sum(1 for s in period_shots if s.result == ShotResult.GOAL)
            periods.append(row)
        return periods

    def zone_analysis(self) -> Dict[str, Dict]:
        zones = {name: {"shots": 0, "goals": 0} for name in ("left", "center", "right")}
        for shot in self.shots:
            zone = zones[court_zone(shot.x_coord)]
            zone["shots"] += 1
            if shot.result == ShotResult.GOAL:
                zone["goals"] += 1
        for zone in zones.values():
            zone["fg_percentage"] = fg_percentage(zone["goals"], zone["shots"])
        return zones


async def load_match_data(session: AsyncSession, game_id: int) -> MatchData:
    names = await game_service.get_game(session, game_id)
    game = await game_service.get_game_model(session, game_id)

    def _ordered(model):
        return select(model).where(model.game_id == game_id).order_by(model.created_at, model.id)

    roster = (await session.execute(select(GameRoster).where(GameRoster.game_id == game_id))).scalars().all()
    shots = (await session.execute(_ordered(Shot))).scalars().all()
    substitutions = (await session.execute(_ordered(Substitution))).scalars().all()
    timeouts = (await session.execute(_ordered(Timeout))).scalars().all()
    events = (await session.execute(_ordered(GameEvent))).scalars().all()

    player_ids = {r.player_id for r in roster} | {s.player_id for s in shots}
    player_ids |= {e.player_id for e in events if e.player_id}
    for sub in substitutions:
        player_ids.update((sub.player_in_id, sub.player_out_id))
    players = {}
    if player_ids:
        result = await session.execute(select(Player).where(Player.id.in_(player_ids)))
        players = {p.id: p for p in result.scalars().all()}

    clubs = {
        game.home_club_id: names.get("home_club_name"),
        game.away_club_id: names.get("away_club_name"),
    }
    return MatchData(game, names, clubs, players, list(roster), list(shots), list(substitutions), list(timeouts), list(events))


def _slug(text: str) -> str:
    return "".join(ch if ch.isalnum() else "_" for ch in text).strip("_")


def render_match_csv(data: MatchData) -> str:
    game = data.game
    parts = [
        _csv_section(
            "GAME METADATA",
            ["Field", "Value"],
            [
                ["Game ID", game.id],
                ["Date", isoformat(game.date)],
                ["Home Team", data.home_name],
                ["Away Team", data.away_name],
                ["Home Score", game.home_score],
                ["Away Score", game.away_score],
                ["Status", game.status.value],
                ["Number of Periods", game.number_of_periods],
                ["Period Duration (seconds)", game.period_duration_seconds],
                ["Home Attacking Side", game.home_attacking_side.value if game.home_attacking_side else "N/A"],
            ],
        ),
        _csv_section(
            "SHOTS",
            ["ID", "Period", "Time Remaining (seconds)", "X Coord", "Y Coord", "Result", "Shot Type",
             "Distance", "Player Name", "Jersey Number", "Team Name", "Timestamp"],
            [
                [s.id, s.period, s.time_remaining_seconds, s.x_coord, s.y_coord, s.result.value, s.shot_type,
                 s.distance, _full_name(data.players.get(s.player_id)),
                 getattr(data.players.get(s.player_id), "jersey_number", None),
                 data.clubs.get(s.club_id), isoformat(s.created_at)]
                for s in data.shots
            ],
        ),
        _csv_section(
            "SUBSTITUTIONS",
            ["ID", "Period", "Time Remaining (seconds)", "Player In", "Player In Jersey", "Player Out",
             "Player Out Jersey", "Team Name", "Reason", "Timestamp"],
            [
                [s.id, s.period, s.time_remaining_seconds,
                 _full_name(data.players.get(s.player_in_id)),
                 getattr(data.players.get(s.player_in_id), "jersey_number", None),
                 _full_name(data.players.get(s.player_out_id)),
                 getattr(data.players.get(s.player_out_id), "jersey_number", None),
                 data.clubs.get(s.club_id), s.reason.value, isoformat(s.created_at)]
                for s in data.substitutions
            ],
        ),
        _csv_section(
            "TIMEOUTS",
            ["ID", "Period", "Time Remaining (seconds)", "Team Name", "Timeout Type", "Duration (seconds)",
             "Reason", "Called By", "Timestamp"],
            [
                [t.id, t.period, t.time_remaining_seconds, data.clubs.get(t.club_id), t.timeout_type.value,
                 t.duration_seconds, t.reason, t.called_by, isoformat(t.created_at)]
                for t in data.timeouts
            ],
        ),
        _csv_section(
            "FOULS",
            ["ID", "Event Type", "Period", "Time Remaining (seconds)", "Player Name", "Jersey Number",
             "Team Name", "Details", "Timestamp"],
            [
                [e.id, e.event_type, e.period, e.time_remaining_seconds,
                 _full_name(data.players.get(e.player_id)),
                 getattr(data.players.get(e.player_id), "jersey_number", None),
                 data.clubs.get(e.club_id), json.dumps(e.details) if e.details else None,
                 isoformat(e.created_at)]
                for e in data.events
                if e.event_type == "foul" or e.event_type.startswith("fault_")
            ],
        ),
        _csv_section(
            "PLAYER PARTICIPATION",
            ["Player Name", "Jersey Number", "Team Name", "Is Captain", "Is Starting", "Starting Position",
             "Total Shots", "Goals"],
            _participation_rows(data),
        ),
    ]
    return "\n\n".join(part.rstrip("\n") for part in parts) + "\n"


def _participation_rows(data: MatchData) -> List[List]:
    shot_counts: Dict[int, List[int]] = {}
    for shot in data.shots:
        counts = shot_counts.setdefault(shot.player_id, [0, 0])
        counts[0] += 1
        if shot.result == ShotResult.GOAL:
            counts[1] += 1
    rows = []
    for entry in data.roster:
        player = data.players.get(entry.player_id)
        shots, goals = shot_counts.get(entry.player_id, [0, 0])
        rows.append(
            [_full_name(player), player.jersey_number if player else None, data.clubs.get(entry.club_id),
             entry.is_captain, entry.is_starting,
             entry.starting_position.value if entry.starting_position else None, shots, goals]
        )
    rows.sort(key=lambda r: (r[2] or "", r[1] or 0))
    return rows


async def export_match_csv(session: AsyncSession, game_id: int) -> Tuple[str, str]:
    """Return (filename, csv content) for a single match."""
    data = await load_match_data(session, game_id)
    filename = (
        f"match_{game_id}_{_slug(data.home_name)}_vs_{_slug(data.away_name)}_"
        f"{utcnow().date().isoformat()}.csv"
    )
    return filename, render_match_csv(data)


def match_summary(data: MatchData) -> Dict:
    return {
        "game": game_service.game_to_dict(data.game, {k: v for k, v in data.names.items() if k.endswith("_name")}),
        "teams": data.club_totals(),
        "players": data.player_stats(),
        "periods": data.period_breakdown(),
        "zones": data.zone_analysis(),
        "substitutions": len(data.substitutions),
        "timeouts": len(data.timeouts),
        "events": len(data.events),
        "exported_at": isoformat(utcnow()),
    }


async def export_match_json(session: AsyncSession, game_id: int) -> Dict:
    return match_summary(await load_match_data(session, game_id))


async def export_games_csv(
    session: AsyncSession,
    club_id: Optional[int] = None,
    team_id: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    game_ids: Optional[List[int]] = None,
) -> Tuple[str, str]:
    """
    Export a list of games with per-game shooting totals.

    Raises:
        NotFoundError: No games match the filters
    """
    games = await game_service.list_games(
        session, club_id=club_id, team_id=team_id, date_from=date_from, date_to=date_to
    )
    if game_ids:
        wanted = set(game_ids)
        games = [g for g in games if g["id"] in wanted]
    if not games:
        raise NotFoundError("No games found matching the criteria")

    ids = [g["id"] for g in games]
    shots = await session.execute(select(Shot.game_id, Shot.club_id, Shot.result).where(Shot.game_id.in_(ids)))
    totals: Dict[Tuple[int, int], List[int]] = {}
    for game_id, shot_club, result in shots.all():
        counts = totals.setdefault((game_id, shot_club), [0, 0])
        counts[0] += 1
        if result == ShotResult.GOAL:
            counts[1] += 1

    rows = []
    for g in games:
        home_shots, home_goals = totals.get((g["id"], g["home_club_id"]), [0, 0])
        away_shots, away_goals = totals.get((g["id"], g["away_club_id"]), [0, 0])
        rows.append(
            [g["id"], g["date"], g["home_club_name"], g["away_club_name"], g["home_score"], g["away_score"],
             g["status"], home_shots, fg_percentage(home_goals, home_shots), away_shots, fg_percentage(away_goals, away_shots)]
        )

    summary = _csv_section(
        "BULK GAMES EXPORT",
        ["Field", "Value"],
        [
            ["Export Date", isoformat(utcnow())],
            ["Total Games", len(games)],
            ["Date From", isoformat(date_from) or "All time"],
            ["Date To", isoformat(date_to) or "Present"],
        ],
    )
    table = _csv_section(
        "GAMES",
        ["Game ID", "Date", "Home Team", "Away Team", "Home Score", "Away Score", "Status",
         "Home Shots", "Home FG%", "Away Shots", "Away FG%"],
        rows,
    )
    filename = f"games_export_{utcnow().date().isoformat()}.csv"
    return filename, summary.rstrip("\n") + "\n\n" + table


# ---------------------------------------------------------------------------
# Template reports
# ---------------------------------------------------------------------------


def _game_sections(data: MatchData) -> Dict:
    players = data.player_stats()
    return {
        "game_info": match_summary(data)["game"],
        "final_score": {
            "home": {"name": data.home_name, "score": data.game.home_score},
            "away": {"name": data.away_name, "score": data.game.away_score},
        },
        "team_comparison": data.club_totals(),
        "key_stats": data.club_totals(),
        "top_scorers": sorted(players, key=lambda p: (-p["goals"], -p["fg_percentage"]))[:3],
        "player_stats": players,
        "player_performance": players,
        "period_breakdown": data.period_breakdown(),
        "zone_analysis": data.zone_analysis(),
        "shot_chart": [
            {"x": s.x_coord, "y": s.y_coord, "result": s.result.value, "player_id": s.player_id,
             "club_id": s.club_id, "period": s.period}
            for s in data.shots
        ],
        "substitutions": [
            {"period": s.period, "club_id": s.club_id, "player_in_id": s.player_in_id,
             "player_out_id": s.player_out_id, "reason": s.reason.value}
            for s in data.substitutions
        ],
    }


async def _team_sections(session: AsyncSession, team_id: int) -> Dict:
    team = await session.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team not found")
    result = await session.execute(
        select(Game).where(
            or_(Game.home_team_id == team_id, Game.away_team_id == team_id),
            Game.status == GameStatus.COMPLETED,
        ).order_by(Game.date)
    )
    games = result.scalars().all()
    wins = draws = losses = goals_for = goals_against = 0
    for game in games:
        home = game.home_team_id == team_id
        scored, conceded = (game.home_score, game.away_score) if home else (game.away_score, game.home_score)
        goals_for += scored
        goals_against += conceded
        if scored > conceded:
            wins += 1
        elif scored < conceded:
            losses += 1
        else:
            draws += 1

    shots = await session.execute(
        select(Player.id, Player.first_name, Player.last_name, Shot.result)
        .join(Shot, Shot.player_id == Player.id)
        .where(Player.team_id == team_id)
    )
    per_player: Dict[int, Dict] = {}
    for pid, first, last, res in shots.all():
        row = per_player.setdefault(pid, {"player_id": pid, "player_name": f"{first} {last}", "shots": 0, "goals": 0})
        row["shots"] += 1
        if res == ShotResult.GOAL:
            row["goals"] += 1
    for row in per_player.values():
        row["fg_percentage"] = fg_percentage(row["goals"], row["shots"])
    performers = sorted(per_player.values(), key=lambda r: (-r["goals"], -r["fg_percentage"]))

    club = await session.get(Club, team.club_id)
    return {
        "season_info": {"team_id": team.id, "team_name": team.name, "club_name": club.name if club else None},
        "win_loss_record": {"games": len(games), "wins": wins, "draws": draws, "losses": losses},
        "total_stats": {
            "goals_for": goals_for,
            "goals_against": goals_against,
            "shots": sum(r["shots"] for r in performers),
            "avg_fg_percentage": fg_percentage(sum(r["goals"] for r in performers), sum(r["shots"] for r in performers)),
        },
        "top_performers": performers[:5],
        "player_stats": performers,
    }


def render_report(report: Dict, export_format: ExportFormat) -> str:
    """CSV flattens each section into key/value rows; JSON (and PDF) keep the structure."""
    if export_format != ExportFormat.CSV:
        return json.dumps(report, indent=2, default=str)

    parts = []
    for name, section in report["sections"].items():
        if isinstance(section, list) and section and isinstance(section[0], dict):
            headers = list(section[0].keys())
            parts.append(_csv_section(name.upper(), headers, [[row.get(h) for h in headers] for row in section]))
        elif isinstance(section, dict):
            rows = [[k, json.dumps(v) if isinstance(v, (dict, list)) else v] for k, v in section.items()]
            parts.append(_csv_section(name.upper(), ["Field", "Value"], rows))
        else:
            parts.append(_csv_section(name.upper(), ["Value"], [[json.dumps(section, default=str)]]))
    return "\n\n".join(part.rstrip("\n") for part in parts) + "\n"


async def build_report(
    session: AsyncSession,
    template: ReportTemplate,
    game_id: Optional[int] = None,
    team_id: Optional[int] = None,
) -> Dict:
    """Collect the template's sections for a game or a team. Unknown sections are skipped."""
    if game_id is not None:
        available = _game_sections(await load_match_data(session, game_id))
    elif team_id is not None:
        available = await _team_sections(session, team_id)
    else:
        raise ValueError("A game or team is required to generate a report")

    wanted = template.sections or list(available.keys())
    return {
        "template": {"id": template.id, "name": template.name, "type": template.type.value},
        "generated_at": isoformat(utcnow()),
        "metrics": template.metrics or [],
        "branding": template.branding,
        "sections": {name: available[name] for name in wanted if name in available},
    }


def _export_to_dict(export: ReportExport) -> Dict:
    size = export.file_size_bytes
    return {
        "id": export.id,
        "name": export.report_name,
        "format": export.format.value,
        "dataType": export.report_type,
        "template_id": export.template_id,
        "game_id": export.game_id,
        "team_id": export.team_id,
        "createdAt": isoformat(export.created_at),
        "file_size_bytes": size,
        "size": f"{size / 1024:.2f} KB" if size else "-",
        "status": "completed" if export.content is not None else "processing",
        "downloadUrl": f"/api/exports/{export.id}/download" if export.content is not None else None,
    }


async def store_export(
    session: AsyncSession,
    template: ReportTemplate,
    user_id: Optional[int],
    export_format: ExportFormat,
    data_type: str = "game",
    game_id: Optional[int] = None,
    team_id: Optional[int] = None,
    report_name: Optional[str] = None,
) -> ReportExport:
    """Generate a report and keep it in report_exports. Does not commit."""
    report = await build_report(session, template, game_id=game_id, team_id=team_id)
    content = render_report(report, export_format)
    encoded = content.encode("utf-8")
    export = ReportExport(
        template_id=template.id,
        generated_by=user_id,
        report_name=report_name or f"{template.name} - {utcnow().date().isoformat()}",
        report_type=data_type,
        format=export_format,
        game_id=game_id,
        team_id=team_id,
        content=content,
        file_size_bytes=len(encoded),
        file_hash=hashlib.sha256(encoded).hexdigest(),
    )
    session.add(export)
    await session.flush()
    return export


async def create_export_from_template(
    session: AsyncSession,
    user_id: int,
    template_id: int,
    data_type: str = "game",
    game_id: Optional[int] = None,
    team_id: Optional[int] = None,
    export_format: Optional[str] = None,
) -> Dict:
    """
    Raises:
        NotFoundError: Unknown team, game or active template
        ValueError: Neither game nor team given
    """
    if team_id is not None and await session.get(Team, team_id) is None:
        raise NotFoundError("Team not found")
    template = await session.get(ReportTemplate, template_id)
    if template is None or not template.is_active:
        raise NotFoundError("Template not found")

    if export_format is None:
        from shotspot.services import export_settings_service

        settings = await export_settings_service.get_settings(session, user_id)
        export_format = settings["default_format"]

    export = await store_export(
        session, template, user_id, ExportFormat(export_format), data_type, game_id=game_id, team_id=team_id
    )
    await session.commit()
    logger.info(f"User {user_id} generated export {export.id} from template {template_id}")
    return _export_to_dict(export)


async def list_recent_exports(session: AsyncSession, user_id: int) -> List[Dict]:
    result = await session.execute(
        select(ReportExport)
        .where(ReportExport.generated_by == user_id)
        .order_by(ReportExport.created_at.desc(), ReportExport.id.desc())
        .limit(RECENT_EXPORTS_LIMIT)
    )
    return [_export_to_dict(e) for e in result.scalars().all()]


async def _own_export(session: AsyncSession, user_id: int, export_id: int) -> ReportExport:
    export = await session.get(ReportExport, export_id)
    if export is None or export.generated_by != user_id:
        raise NotFoundError("Export not found")
    return export


async def get_export_download(session: AsyncSession, user_id: int, export_id: int) -> Tuple[str, str, str]:
    """Return (filename, media type, content) of a stored export."""
    export = await _own_export(session, user_id, export_id)
    if export.content is None:
        raise NotFoundError("Export file not yet generated")
    extension = "csv" if export.format == ExportFormat.CSV else "json"
    filename = f"{_slug(export.report_name)}.{extension}"
    return filename, MEDIA_TYPES[export.format], export.content


async def delete_export(session: AsyncSession, user_id: int, export_id: int) -> None:
    export = await _own_export(session, user_id, export_id)
    await session.delete(export)
    await session.commit()
