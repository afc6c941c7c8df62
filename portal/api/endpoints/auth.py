# portal/api/endpoints/auth.py

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.deps import get_current_user, get_db_session
from portal.core.config import settings
from portal.core.errors import ConflictError
from portal.core.rate_limiter import limiter
from portal.models.user import User
from portal.schemas.auth import (
    LoginRequest,
    MeResponse,
    SignupRequest,
    SignupResponse,
    TokenWithUser,
    VerifyEmailRequest,
    VerifyTokenResponse,
)
from portal.schemas.user import UserRead
from portal.services.auth_service import (
    authenticate_user,
    create_login_response,
    list_heads,
    signup,
    to_user_read,
    to_user_reads,
    verify_email,
)

router = APIRouter(prefix="/auth", tags=["Auth"])


# -------------------------------------------------------------------
# LOGIN
# -------------------------------------------------------------------
@router.post("/login", response_model=TokenWithUser)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    payload: LoginRequest,
    session: AsyncSession = Depends(get_db_session),
):
    user = await authenticate_user(session, payload.email, payload.password)

    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    if not user.is_verified:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Please verify your email before logging in")

    return await create_login_response(user, session, remember_me=payload.remember_me)


# -------------------------------------------------------------------
# SIGNUP (HEAD / STAFF self-registration)
# -------------------------------------------------------------------
@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def signup_endpoint(
    request: Request,
    payload: SignupRequest,
    session: AsyncSession = Depends(get_db_session),
):
    try:
        user = await signup(session, payload)
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return SignupResponse(
        message="Account created. Check your email to verify your account.",
        user=await to_user_read(session, user),
    )


# -------------------------------------------------------------------
# EMAIL VERIFICATION (logs the user in on success)
# -------------------------------------------------------------------
@router.post("/verify", response_model=TokenWithUser)
async def verify_email_endpoint(
    payload: VerifyEmailRequest,
    session: AsyncSession = Depends(get_db_session),
):
    try:
        user = await verify_email(session, payload.token)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return await create_login_response(user, session)


# -------------------------------------------------------------------
# TOKEN CHECK + CURRENT USER
# -------------------------------------------------------------------
@router.get("/verify-token", response_model=VerifyTokenResponse)
async def verify_token(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    return VerifyTokenResponse(valid=True, user=await to_user_read(session, current_user))


@router.get("/me", response_model=MeResponse)
async def me(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    return MeResponse(user=await to_user_read(session, current_user))


# -------------------------------------------------------------------
# HEADS (card creation dropdown)
# -------------------------------------------------------------------
@router.get("/heads", response_model=List[UserRead])
async def heads(session: AsyncSession = Depends(get_db_session)):
    return await to_user_reads(session, await list_heads(session))
