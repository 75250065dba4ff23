"""
User service layer for accounts, roles and login history.
"""

from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, or_
from shotspot.database.models import User, UserRole, LoginHistory
from shotspot.utils.datetime_utils import utcnow, isoformat
from shotspot.utils.errors import NotFoundError, ConflictError
import logging

logger = logging.getLogger(__name__)


def _user_to_dict(user: User, include_hash: bool = False) -> Dict:
    data = {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role.value if isinstance(user.role, UserRole) else user.role,
        "password_must_change": bool(user.password_must_change),
        "is_active": bool(user.is_active),
        "last_login": isoformat(user.last_login),
        "created_at": isoformat(user.created_at),
    }
    if include_hash:
        data["password_hash"] = user.password_hash
    return data


async def create_user(
    session: AsyncSession,
    username: str,
    email: str,
    password_hash: str,
    role: str = "user",
    password_must_change: bool = False,
) -> Dict:
    """
    Create a new user account.

    Args:
        session: Database session
        username: Unique username (3-50 chars)
        email: Unique, already-normalized email
        password_hash: bcrypt hash
        role: user, coach or admin
        password_must_change: Force a password change on first login

    Returns:
        The created user dict

    Raises:
        ConflictError: If the username or email is taken
    """
    result = await session.execute(
        select(User.id).where(or_(User.username == username, User.email == email))
    )
    if result.first():
        raise ConflictError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        password_hash=password_hash,
        role=UserRole(role),
        password_must_change=password_must_change,
    )
    session.add(user)
    await session.flush()
    await session.commit()
    return _user_to_dict(user)


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[Dict]:
    """Get an active user by ID, without the password hash."""
    result = await session.execute(
        select(User).where(User.id == user_id, User.is_active == True)  # noqa: E712
    )
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def get_user_with_password(session: AsyncSession, user_id: int) -> Optional[Dict]:
    """Get an active user by ID including the password hash."""
    result = await session.execute(
        select(User).where(User.id == user_id, User.is_active == True)  # noqa: E712
    )
    user = result.scalar_one_or_none()
    return _user_to_dict(user, include_hash=True) if user else None


async def get_user_by_login(session: AsyncSession, identifier: str) -> Optional[Dict]:
    """
    Look up an active user by username or email (case-insensitive).

    Returns:
        User dict including password_hash, or None
    """
    ident = identifier.strip().lower()
    result = await session.execute(
        select(User).where(
            or_(func.lower(User.username) == ident, func.lower(User.email) == ident),
            User.is_active == True,  # noqa: E712
        )
    )
    user = result.scalars().first()
    return _user_to_dict(user, include_hash=True) if user else None


async def list_users(session: AsyncSession) -> List[Dict]:
    """All active users ordered by username."""
    result = await session.execute(
        select(User).where(User.is_active == True).order_by(User.username)  # noqa: E712
    )
    return [_user_to_dict(u) for u in result.scalars().all()]


async def record_login_attempt(
    session: AsyncSession,
    username: str,
    success: bool,
    user_id: Optional[int] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    error_message: Optional[str] = None,
) -> None:
    """Write a login_history row; on success also stamps users.last_login."""
    session.add(
        LoginHistory(
            user_id=user_id,
            username=username,
            success=success,
            ip_address=ip_address,
            user_agent=user_agent,
            error_message=error_message,
        )
    )
    if success and user_id is not None:
        await session.execute(update(User).where(User.id == user_id).values(last_login=utcnow()))
    await session.commit()


async def get_login_history(session: AsyncSession, user_id: int, limit: int = 50) -> List[Dict]:
    result = await session.execute(
        select(LoginHistory)
        .where(LoginHistory.user_id == user_id)
        .order_by(LoginHistory.created_at.desc(), LoginHistory.id.desc())
        .limit(limit)
    )
    return [
        {
            "id": row.id,
            "success": row.success,
            "ip_address": row.ip_address,
            "user_agent": row.user_agent,
            "error_message": row.error_message,
            "created_at": isoformat(row.created_at),
        }
        for row in result.scalars().all()
    ]


async def update_user_password(
    session: AsyncSession, user_id: int, password_hash: str, must_change: bool = False
) -> bool:
    """
    Replace a user's password hash.

    Returns:
        True if a row was updated
    """
    result = await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(password_hash=password_hash, password_must_change=must_change, updated_at=func.now())
    )
    await session.commit()
    return result.rowcount > 0


async def update_user_role(session: AsyncSession, user_id: int, role: str, acting_user_id: int) -> Dict:
    """
    Change a user's role.

    Raises:
        PermissionError: If an admin tries to demote themselves
        NotFoundError: If the user does not exist
    """
    if user_id == acting_user_id and role != UserRole.ADMIN.value:
        raise PermissionError("Cannot demote yourself")

    user = await session.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFoundError("User not found")
    user.role = UserRole(role)
    await session.commit()
    return _user_to_dict(user)


async def update_user_profile(
    session: AsyncSession,
    user_id: int,
    username: Optional[str] = None,
    email: Optional[str] = None,
) -> Dict:
    """
    Update username and/or email.

    Raises:
        NotFoundError: If the user does not exist
        ValueError: If nothing to update
        ConflictError: If the new username or email is taken
    """
    user = await session.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFoundError("User not found")
    if username is None and email is None:
        raise ValueError("No fields provided to update")

    conditions = []
    if username is not None:
        conditions.append(User.username == username)
    if email is not None:
        conditions.append(User.email == email)
    clash = await session.execute(
        select(User.id).where(or_(*conditions), User.id != user_id)
    )
    if clash.first():
        raise ConflictError("Username or email already taken")

    if username is not None:
        user.username = username
    if email is not None:
        user.email = email
    await session.commit()
    return _user_to_dict(user)


async def bulk_change_roles(
    session: AsyncSession, user_ids: List[int], role: str, acting_user_id: int
) -> int:
    """
    Set the same role on several active users.

    Raises:
        PermissionError: If the caller is included

    Returns:
        Number of users updated
    """
    if acting_user_id in user_ids:
        raise PermissionError("Cannot change your own role in bulk operation")
    result = await session.execute(
        update(User)
        .where(User.id.in_(user_ids), User.is_active == True)  # noqa: E712
        .values(role=UserRole(role), updated_at=func.now())
    )
    await session.commit()
    return result.rowcount or 0


async def deactivate_user(session: AsyncSession, user_id: int, acting_user_id: int) -> None:
    """
    Soft delete a user.

    Raises:
        PermissionError: Deleting yourself or the last active admin
        NotFoundError: Unknown or already inactive user
    """
    if user_id == acting_user_id:
        raise PermissionError("Cannot delete your own account")

    user = await session.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFoundError("User not found")

    if user.role == UserRole.ADMIN and await count_admins(session) <= 1:
        raise PermissionError("Cannot delete the last admin user")

    user.is_active = False
    await session.commit()


async def count_admins(session: AsyncSession) -> int:
    """Number of active admin accounts."""
    result = await session.execute(
        select(func.count())
        .select_from(User)
        .where(User.role == UserRole.ADMIN, User.is_active == True)  # noqa: E712
    )
    return result.scalar() or 0
