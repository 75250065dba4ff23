"""Authentication route handlers."""

import logging
from typing import Dict, Any

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shotspot.api.routes import limiter, AUTH_RATE_LIMIT, INVALID_CREDENTIALS_RESPONSE, to_http_exception, server_error
from shotspot.api.auth_dependencies import get_current_user
from shotspot.database.db import get_db_session
from shotspot.models.schemas import RegisterRequest, LoginRequest, ChangePasswordRequest, AuthResponse
from shotspot.services import auth_service, user_service
from shotspot.utils.errors import ConflictError

logger = logging.getLogger(__name__)
router = APIRouter()


def _issue_token(user: Dict) -> str:
    return auth_service.create_access_token(
        data={"user_id": user["id"], "username": user["username"], "role": user["role"]}
    )


def _public_user(user: Dict) -> Dict:
    return {k: v for k, v in user.items() if k != "password_hash"}


@router.post("/api/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit(AUTH_RATE_LIMIT)
async def register(request: Request, payload: RegisterRequest, session: AsyncSession = Depends(get_db_session)):
    """Create a "user" account and return a token for it."""
    try:
        problems = auth_service.validate_password_strength(payload.password)
        if problems:
            raise HTTPException(status_code=400, detail=problems[0])
        email = auth_service.normalize_email(payload.email)
        user = await user_service.create_user(
            session,
            username=payload.username,
            email=email,
            password_hash=auth_service.hash_password(payload.password),
        )
        logger.info(f"Registered user {user['id']} ({user['username']})")
        return AuthResponse(access_token=_issue_token(user), user=user)
    except HTTPException:
        raise
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise server_error(logger, "during registration", e)


@router.post("/api/auth/login", response_model=AuthResponse)
@limiter.limit(AUTH_RATE_LIMIT)
async def login(request: Request, payload: LoginRequest, session: AsyncSession = Depends(get_db_session)):
    """Login with username or email and password. Every attempt is recorded."""
    ip_address = request.client.host if request.client else None
    user_agent = request.headers.get("user-agent")
    try:
        user = await user_service.get_user_by_login(session, payload.username)
        if not user or not auth_service.verify_password(payload.password, user["password_hash"]):
            await user_service.record_login_attempt(
                session,
                username=payload.username,
                success=False,
                user_id=user["id"] if user else None,
                ip_address=ip_address,
                user_agent=user_agent,
                error_message="Invalid credentials",
            )
            raise INVALID_CREDENTIALS_RESPONSE

        await user_service.record_login_attempt(
            session,
            username=user["username"],
            success=True,
            user_id=user["id"],
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return AuthResponse(access_token=_issue_token(user), user=_public_user(user))
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise server_error(logger, "during login", e)


@router.post("/api/auth/change-password", response_model=AuthResponse)
async def change_password(
    payload: ChangePasswordRequest,
    user: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Change the caller's password. Clears password_must_change and issues a
    fresh token.
    """
    try:
        stored = await user_service.get_user_with_password(session, user["id"])
        if stored is None:
            raise HTTPException(status_code=404, detail="User not found")
        if not auth_service.verify_password(payload.current_password, stored["password_hash"]):
            raise HTTPException(status_code=401, detail="Current password is incorrect")
        if auth_service.verify_password(payload.new_password, stored["password_hash"]):
            raise HTTPException(status_code=400, detail="New password must be different from the current password")
        problems = auth_service.validate_password_strength(payload.new_password)
        if problems:
            raise HTTPException(status_code=400, detail=problems[0])

        await user_service.update_user_password(
            session, user["id"], auth_service.hash_password(payload.new_password), must_change=False
        )
        updated = await user_service.get_user_by_id(session, user["id"])
        logger.info(f"User {user['id']} changed their password")
        return AuthResponse(access_token=_issue_token(updated), user=updated)
    except HTTPException:
        raise
    except (ValueError, PermissionError) as e:
        raise to_http_exception(e)
    except Exception as e:
        raise server_error(logger, "changing password", e)


@router.post("/api/auth/logout")
async def logout(user: dict = Depends(get_current_user)) -> Dict[str, Any]:
    """Tokens are stateless; the client discards its token."""
    return {"success": True, "message": "Logged out"}


@router.get("/api/auth/me")
async def get_me(user: dict = Depends(get_current_user)):
    return user
