"""
Twizzit integration: stored credentials, club/player import and sync bookkeeping.

Twizzit "groups" become local clubs and "group contacts" become players.
Both are linked through mapping tables so repeated syncs update in place.
Every sync run writes a twizzit_sync_history row with processed, succeeded
and failed counts.
"""

import json
import logging
import os
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.database.models import (
    Club,
    MappingSyncStatus,
    Player,
    SyncHistoryStatus,
    TwizzitCredential,
    TwizzitPlayerMapping,
    TwizzitSyncConfig,
    TwizzitSyncHistory,
    TwizzitTeamMapping,
)
from shotspot.services import crypto_service
from shotspot.services.twizzit_client import TwizzitClient
from shotspot.utils.constants import TWIZZIT_DEFAULT_API_ENDPOINT, TWIZZIT_DEFAULT_SYNC_INTERVAL_MINUTES
from shotspot.utils.datetime_utils import isoformat, utcnow
from shotspot.utils.errors import NotFoundError

logger = logging.getLogger(__name__)

MIN_SYNC_INTERVAL_MINUTES = 1
MAX_SYNC_INTERVAL_MINUTES = 1440
CONFIG_FIELDS = ("sync_teams", "sync_players", "sync_competitions", "sync_interval_minutes", "auto_sync_enabled")


def _default_endpoint() -> str:
    return os.getenv("TWIZZIT_API_BASE_URL", TWIZZIT_DEFAULT_API_ENDPOINT)


def _credential_to_dict(credential: TwizzitCredential) -> Dict:
    return {
        "id": credential.id,
        "organization_name": credential.organization_name,
        "api_username": credential.api_username,
        "api_endpoint": credential.api_endpoint,
        "is_active": credential.is_active,
        "last_verified_at": isoformat(credential.last_verified_at),
        "created_at": isoformat(credential.created_at),
    }


def _config_to_dict(config: TwizzitSyncConfig) -> Dict:
    return {
        "id": config.id,
        "credential_id": config.credential_id,
        "sync_teams": config.sync_teams,
        "sync_players": config.sync_players,
        "sync_competitions": config.sync_competitions,
        "sync_interval_minutes": config.sync_interval_minutes,
        "auto_sync_enabled": config.auto_sync_enabled,
        "last_sync_at": isoformat(config.last_sync_at),
        "next_sync_at": isoformat(config.next_sync_at),
    }


def _history_to_dict(history: TwizzitSyncHistory) -> Dict:
    return {
        "id": history.id,
        "credential_id": history.credential_id,
        "sync_type": history.sync_type,
        "sync_direction": history.sync_direction,
        "status": history.status.value,
        "items_processed": history.items_processed,
        "items_succeeded": history.items_succeeded,
        "items_failed": history.items_failed,
        "error_message": history.error_message,
        "started_at": isoformat(history.started_at),
        "completed_at": isoformat(history.completed_at),
    }


def _contact_field(contact: Dict, snake: str, camel: str):
    value = contact.get(snake)
    return value if value is not None else contact.get(camel)


def contact_names(contact: Dict) -> tuple:
    first = (_contact_field(contact, "first_name", "firstName") or "").strip()
    last = (_contact_field(contact, "last_name", "lastName") or "").strip()
    return first, last


def contact_jersey(contact: Dict) -> Optional[int]:
    value = _contact_field(contact, "jersey_number", "jerseyNumber")
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


async def store_credentials(
    session: AsyncSession,
    organization_name: str,
    api_username: str,
    api_password: str,
    api_endpoint: Optional[str] = None,
) -> Dict:
    credential = TwizzitCredential(
        organization_name=organization_name.strip(),
        api_username=api_username.strip(),
        encrypted_password=crypto_service.encrypt(api_password),
        api_endpoint=(api_endpoint or _default_endpoint()).strip(),
        is_active=True,
    )
    session.add(credential)
    await session.flush()
    await session.commit()
    logger.info(f"Stored Twizzit credentials {credential.id} for {credential.organization_name}")
    return _credential_to_dict(credential)


async def list_credentials(session: AsyncSession) -> List[Dict]:
    result = await session.execute(select(TwizzitCredential).order_by(TwizzitCredential.created_at.desc()))
    return [_credential_to_dict(c) for c in result.scalars().all()]


async def get_credential_model(session: AsyncSession, credential_id: int) -> TwizzitCredential:
    credential = await session.get(TwizzitCredential, credential_id)
    if credential is None:
        raise NotFoundError("Twizzit credential not found")
    return credential


async def delete_credentials(session: AsyncSession, credential_id: int) -> None:
    credential = await get_credential_model(session, credential_id)
    await session.delete(credential)
    await session.commit()


def build_client(credential: TwizzitCredential) -> TwizzitClient:
    """API client for a stored credential, with its password decrypted."""
    return TwizzitClient(
        username=credential.api_username,
        password=crypto_service.decrypt(credential.encrypted_password),
        api_endpoint=credential.api_endpoint,
    )


async def verify_credentials(session: AsyncSession, credential_id: int) -> Dict:
    credential = await get_credential_model(session, credential_id)
    async with build_client(credential) as client:
        connected = await client.verify_connection()
    if connected:
        credential.last_verified_at = utcnow()
        await session.commit()
    return {
        "success": connected,
        "message": "Connection verified successfully" if connected else "Connection verification failed",
        "api_endpoint": credential.api_endpoint,
        "last_verified_at": isoformat(credential.last_verified_at),
    }


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


async def _start_history(session: AsyncSession, credential_id: int, sync_type: str) -> TwizzitSyncHistory:
    history = TwizzitSyncHistory(
        credential_id=credential_id,
        sync_type=sync_type,
        sync_direction="import",
        status=SyncHistoryStatus.IN_PROGRESS,
        started_at=utcnow(),
    )
    session.add(history)
    await session.flush()
    await session.commit()
    return history


async def _finish_history(
    session: AsyncSession,
    history: TwizzitSyncHistory,
    processed: int,
    succeeded: int,
    failed: int,
    errors: List[Dict],
    fatal: Optional[str] = None,
) -> Dict:
    if fatal:
        history.status = SyncHistoryStatus.FAILED
        history.error_message = fatal
    else:
        history.status = SyncHistoryStatus.PARTIAL_SUCCESS if failed else SyncHistoryStatus.SUCCESS
        history.error_message = json.dumps(errors) if errors else None
    history.items_processed = processed
    history.items_succeeded = succeeded
    history.items_failed = failed
    history.completed_at = utcnow()
    await session.commit()
    return _history_to_dict(history)


async def _upsert_club(session: AsyncSession, group: Dict) -> TwizzitTeamMapping:
    group_id = str(group["id"])
    name = (group.get("name") or f"Twizzit group {group_id}").strip()
    mapping = (
        await session.execute(select(TwizzitTeamMapping).where(TwizzitTeamMapping.twizzit_team_id == group_id))
    ).scalar_one_or_none()

    if mapping is not None:
        club = await session.get(Club, mapping.local_club_id)
        if club.name != name:
            club.name = name
    else:
        club = (await session.execute(select(Club).where(Club.name == name))).scalar_one_or_none()
        if club is None:
            club = Club(name=name)
            session.add(club)
            await session.flush()
        mapping = TwizzitTeamMapping(local_club_id=club.id, twizzit_team_id=group_id)
        session.add(mapping)

    mapping.twizzit_team_name = name
    mapping.last_synced_at = utcnow()
    mapping.sync_status = MappingSyncStatus.SUCCESS
    mapping.sync_error = None
    await session.flush()
    return mapping


async def _upsert_player(session: AsyncSession, contact: Dict, team_mapping: TwizzitTeamMapping) -> None:
    contact_id = str(contact["id"])
    first, last = contact_names(contact)
    if not first and not last:
        raise ValueError("Contact has no name")
    jersey = contact_jersey(contact)

    mapping = (
        await session.execute(select(TwizzitPlayerMapping).where(TwizzitPlayerMapping.twizzit_player_id == contact_id))
    ).scalar_one_or_none()
    if mapping is not None:
        player = await session.get(Player, mapping.local_player_id)
        player.first_name = first or player.first_name
        player.last_name = last or player.last_name
        if jersey is not None:
            player.jersey_number = jersey
    else:
        player = Player(
            club_id=team_mapping.local_club_id,
            first_name=first or "-",
            last_name=last or "-",
            jersey_number=jersey,
            is_active=True,
        )
        session.add(player)
        await session.flush()
        mapping = TwizzitPlayerMapping(local_player_id=player.id, twizzit_player_id=contact_id)
        session.add(mapping)

    mapping.twizzit_player_name = f"{first} {last}".strip()
    mapping.team_mapping_id = team_mapping.id
    mapping.last_synced_at = utcnow()
    mapping.sync_status = MappingSyncStatus.SUCCESS
    mapping.sync_error = None
    await session.flush()


async def _sync_contacts(session: AsyncSession, client: TwizzitClient, team_mapping: TwizzitTeamMapping) -> tuple:
    contacts = await client.get_group_contacts(team_mapping.twizzit_team_id)
    succeeded = failed = 0
    errors = []
    for contact in contacts:
        try:
            await _upsert_player(session, contact, team_mapping)
            succeeded += 1
        except (ValueError, KeyError) as e:
            failed += 1
            errors.append({"twizzit_player_id": contact.get("id"), "error": str(e)})
    await session.commit()
    return len(contacts), succeeded, failed, errors


async def sync_clubs(session: AsyncSession, credential_id: int, include_players: bool = False) -> Dict:
    """
    Import Twizzit groups as clubs.

    Raises:
        NotFoundError: Unknown credential
    """
    credential = await get_credential_model(session, credential_id)
    history = await _start_history(session, credential_id, "clubs")
    processed = succeeded = failed = 0
    errors: List[Dict] = []

    try:
        async with build_client(credential) as client:
            groups = await client.get_groups()
            credential.last_verified_at = utcnow()
            for group in groups:
                processed += 1
                try:
                    mapping = await _upsert_club(session, group)
                    succeeded += 1
                except (ValueError, KeyError) as e:
                    failed += 1
                    errors.append({"twizzit_team_id": group.get("id"), "name": group.get("name"), "error": str(e)})
                    continue
                await session.commit()
                if include_players:
                    await _sync_contacts(session, client, mapping)
    except Exception as e:
        await session.rollback()
        await session.refresh(history)
        logger.error(f"Twizzit club sync failed for credential {credential_id}: {e}")
        await _finish_history(session, history, processed, succeeded, failed, errors, fatal=str(e))
        raise ValueError(f"Club sync failed: {e}") from e

    result = await _finish_history(session, history, processed, succeeded, failed, errors)
    logger.info(f"Twizzit club sync {history.id}: {succeeded}/{processed} succeeded")
    return result


async def sync_players(session: AsyncSession, credential_id: int) -> Dict:
    """Import contacts for every mapped club."""
    credential = await get_credential_model(session, credential_id)
    history = await _start_history(session, credential_id, "players")
    processed = succeeded = failed = 0
    errors: List[Dict] = []

    try:
        mappings = (await session.execute(select(TwizzitTeamMapping))).scalars().all()
        async with build_client(credential) as client:
            for mapping in mappings:
                total, ok, bad, errs = await _sync_contacts(session, client, mapping)
                processed += total
                succeeded += ok
                failed += bad
                errors.extend(errs)
    except Exception as e:
        await session.rollback()
        await session.refresh(history)
        logger.error(f"Twizzit player sync failed for credential {credential_id}: {e}")
        await _finish_history(session, history, processed, succeeded, failed, errors, fatal=str(e))
        raise ValueError(f"Player sync failed: {e}") from e

    result = await _finish_history(session, history, processed, succeeded, failed, errors)
    logger.info(f"Twizzit player sync {history.id}: {succeeded}/{processed} succeeded")
    return result


# ---------------------------------------------------------------------------
# Config and history
# ---------------------------------------------------------------------------


async def _get_or_create_config(session: AsyncSession, credential_id: int) -> TwizzitSyncConfig:
    await get_credential_model(session, credential_id)
    config = (
        await session.execute(select(TwizzitSyncConfig).where(TwizzitSyncConfig.credential_id == credential_id))
    ).scalar_one_or_none()
    if config is None:
        config = TwizzitSyncConfig(
            credential_id=credential_id,
            sync_teams=True,
            sync_players=True,
            sync_competitions=False,
            sync_interval_minutes=TWIZZIT_DEFAULT_SYNC_INTERVAL_MINUTES,
            auto_sync_enabled=False,
        )
        session.add(config)
        await session.flush()
        await session.commit()
    return config


async def get_sync_config(session: AsyncSession, credential_id: int) -> Dict:
    return _config_to_dict(await _get_or_create_config(session, credential_id))


async def update_sync_config(session: AsyncSession, credential_id: int, updates: Dict) -> Dict:
    """
    Raises:
        NotFoundError: Unknown credential
        ValueError: Nothing to update or interval outside 1-1440 minutes
    """
    fields = {k: v for k, v in updates.items() if k in CONFIG_FIELDS and v is not None}
    if not fields:
        raise ValueError("No valid fields to update")
    interval = fields.get("sync_interval_minutes")
    if interval is not None and not MIN_SYNC_INTERVAL_MINUTES <= interval <= MAX_SYNC_INTERVAL_MINUTES:
        raise ValueError("sync_interval_minutes must be between 1 and 1440")

    config = await _get_or_create_config(session, credential_id)
    for key, value in fields.items():
        setattr(config, key, value)
    if config.auto_sync_enabled:
        base = config.last_sync_at or utcnow()
        config.next_sync_at = base + timedelta(minutes=config.sync_interval_minutes)
    else:
        config.next_sync_at = None
    await session.commit()
    return _config_to_dict(config)


async def get_sync_history(session: AsyncSession, credential_id: int, limit: int = 50, offset: int = 0) -> List[Dict]:
    if not 1 <= limit <= 100:
        raise ValueError("Limit must be 1-100")
    if offset < 0:
        raise ValueError("Offset must be >= 0")
    result = await session.execute(
        select(TwizzitSyncHistory)
        .where(TwizzitSyncHistory.credential_id == credential_id)
        .order_by(TwizzitSyncHistory.started_at.desc(), TwizzitSyncHistory.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return [_history_to_dict(h) for h in result.scalars().all()]


async def due_sync_configs(session: AsyncSession) -> List[TwizzitSyncConfig]:
    now = utcnow()
    result = await session.execute(
        select(TwizzitSyncConfig)
        .join(TwizzitCredential, TwizzitCredential.id == TwizzitSyncConfig.credential_id)
        .where(
            TwizzitSyncConfig.auto_sync_enabled == True,  # noqa: E712
            TwizzitCredential.is_active == True,  # noqa: E712
            TwizzitSyncConfig.next_sync_at.is_not(None),
            TwizzitSyncConfig.next_sync_at <= now,
        )
    )
    return list(result.scalars().all())


async def run_auto_sync(session: AsyncSession, config: TwizzitSyncConfig) -> None:
    """Run the syncs a config enables, then schedule its next run."""
    credential_id = config.credential_id
    interval = config.sync_interval_minutes
    try:
        if config.sync_teams:
            await sync_clubs(session, credential_id)
        if config.sync_players:
            await sync_players(session, credential_id)
    finally:
        config = await _get_or_create_config(session, credential_id)
        now = utcnow()
        config.last_sync_at = now
        config.next_sync_at = now + timedelta(minutes=interval)
        await session.commit()


# ---------------------------------------------------------------------------
# Mappings
# ---------------------------------------------------------------------------


async def list_team_mappings(session: AsyncSession) -> List[Dict]:
    result = await session.execute(
        select(TwizzitTeamMapping, Club.name)
        .join(Club, Club.id == TwizzitTeamMapping.local_club_id)
        .order_by(TwizzitTeamMapping.last_synced_at.desc(), TwizzitTeamMapping.id)
    )
    return [
        {
            "id": m.id,
            "local_club_id": m.local_club_id,
            "local_club_name": club_name,
            "twizzit_team_id": m.twizzit_team_id,
            "twizzit_team_name": m.twizzit_team_name,
            "last_synced_at": isoformat(m.last_synced_at),
            "sync_status": m.sync_status.value,
            "sync_error": m.sync_error,
        }
        for m, club_name in result.all()
    ]


async def list_player_mappings(session: AsyncSession, club_id: Optional[int] = None) -> List[Dict]:
    query = (
        select(TwizzitPlayerMapping, Player, Club.name)
        .join(Player, Player.id == TwizzitPlayerMapping.local_player_id)
        .join(Club, Club.id == Player.club_id)
    )
    if club_id is not None:
        query = query.where(Player.club_id == club_id)
    result = await session.execute(query.order_by(TwizzitPlayerMapping.last_synced_at.desc(), TwizzitPlayerMapping.id))
    return [
        {
            "id": m.id,
            "local_player_id": player.id,
            "local_player_name": f"{player.first_name} {player.last_name}".strip(),
            "jersey_number": player.jersey_number,
            "club_id": player.club_id,
            "club_name": club_name,
            "twizzit_player_id": m.twizzit_player_id,
            "twizzit_player_name": m.twizzit_player_name,
            "last_synced_at": isoformat(m.last_synced_at),
            "sync_status": m.sync_status.value,
            "sync_error": m.sync_error,
        }
        for m, player, club_name in result.all()
    ]
