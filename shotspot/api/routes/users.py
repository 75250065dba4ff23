"""User administration route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import to_http_exception, server_error, SERVICE_ERRORS
from shotspot.api.auth_dependencies import get_current_user, require_admin, is_admin
from shotspot.database.db import get_db_session
from shotspot.models.schemas import (
    CreateUserRequest,
    UpdateRoleRequest,
    UpdatePasswordRequest,
    UpdateProfileRequest,
    BulkRoleChangeRequest,
)
from shotspot.services import auth_service, user_service

logger = logging.getLogger(__name__)
router = APIRouter()


def _require_self_or_admin(user: dict, user_id: int) -> None:
    if user["id"] != user_id and not is_admin(user):
        raise HTTPException(status_code=403, detail="Insufficient permissions")


@router.get("/api/users")
async def list_users(
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await user_service.list_users(session)
    except Exception as e:
        raise server_error(logger, "listing users", e)


@router.post("/api/users", status_code=201)
async def create_user(
    payload: CreateUserRequest,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Create an account on someone's behalf. Without an explicit password a
    temporary one is generated and returned once; either way the new user
    must change it at first login.
    """
    try:
        password = payload.password
        generated = password is None
        if generated:
            password = auth_service.generate_temporary_password()
        else:
            problems = auth_service.validate_password_strength(password)
            if problems:
                raise HTTPException(status_code=400, detail=problems[0])

        created = await user_service.create_user(
            session,
            username=payload.username.strip(),
            email=auth_service.normalize_email(payload.email),
            password_hash=auth_service.hash_password(password),
            role=payload.role,
            password_must_change=True,
        )
        logger.info(f"Admin {user['id']} created user {created['id']} with role {created['role']}")
        if generated:
            created["temporary_password"] = password
        return created
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "creating user", e)


@router.get("/api/users/me")
async def get_me(user: dict = Depends(get_current_user)):
    return user


@router.get("/api/users/{user_id}/login-history")
async def get_login_history(
    user_id: int,
    limit: int = Query(50, ge=1, le=200),
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    _require_self_or_admin(user, user_id)
    try:
        return await user_service.get_login_history(session, user_id, limit=limit)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "loading login history", e)


@router.put("/api/users/{user_id}/role")
async def update_role(
    user_id: int,
    payload: UpdateRoleRequest,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await user_service.update_user_role(session, user_id, payload.role, acting_user_id=user["id"])
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating role", e)


@router.put("/api/users/{user_id}/password")
async def update_password(
    user_id: int,
    payload: UpdatePasswordRequest,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Users change their own password with the current one. Admins may reset
    anyone else's; the target then has to change it at next login.
    """
    _require_self_or_admin(user, user_id)
    try:
        target = await user_service.get_user_with_password(session, user_id)
        if target is None:
            raise HTTPException(status_code=404, detail="User not found")

        resetting_other = user["id"] != user_id
        if not resetting_other:
            if not payload.current_password:
                raise HTTPException(status_code=400, detail="Current password is required")
            if not auth_service.verify_password(payload.current_password, target["password_hash"]):
                raise HTTPException(status_code=401, detail="Current password is incorrect")

        problems = auth_service.validate_password_strength(payload.new_password)
        if problems:
            raise HTTPException(status_code=400, detail=problems[0])

        await user_service.update_user_password(
            session,
            user_id,
            auth_service.hash_password(payload.new_password),
            must_change=resetting_other,
        )
        return {"success": True, "message": "Password updated"}
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating password", e)


@router.patch("/api/users/{user_id}/profile")
async def update_profile(
    user_id: int,
    payload: UpdateProfileRequest,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    _require_self_or_admin(user, user_id)
    try:
        email: Optional[str] = None
        if payload.email is not None:
            email = auth_service.normalize_email(payload.email)
        return await user_service.update_user_profile(session, user_id, username=payload.username, email=email)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "updating profile", e)


@router.post("/api/users/bulk-role-change")
async def bulk_role_change(
    payload: BulkRoleChangeRequest,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        updated = await user_service.bulk_change_roles(
            session, payload.user_ids, payload.role, acting_user_id=user["id"]
        )
        return {"success": True, "updated": updated}
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "changing roles", e)


@router.delete("/api/users/{user_id}", status_code=204)
async def delete_user(
    user_id: int,
    user: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """Soft delete: the account is deactivated, history is kept."""
    try:
        await user_service.deactivate_user(session, user_id, acting_user_id=user["id"])
        return Response(status_code=204)
    except SERVICE_ERRORS as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "deleting user", e)
