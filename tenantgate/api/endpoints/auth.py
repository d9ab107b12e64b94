"""
Authentication Endpoints

Registration, login, refresh rotation and logout.

The refresh token lives only in an httpOnly cookie scoped to the auth path.
Registration, login and refresh set it. Logout and a rejected refresh clear
it. It is never part of a response body.
"""
from fastapi import APIRouter, Depends, Request, Response, status

from tenantgate.api.deps import (
    authenticate,
    client_ip,
    get_app_settings,
    get_session_authority,
)
from tenantgate.api.errors import error_response
from tenantgate.config import Settings
from tenantgate.core.context import AuthContext
from tenantgate.core.exceptions import RefreshRejected
from tenantgate.schemas.auth import (
    LoginRequest,
    LogoutAllResponse,
    OkResponse,
    RegisterRequest,
    RegisterResponse,
    Token,
)
from tenantgate.schemas.membership import MembershipResponse
from tenantgate.schemas.tenant import TenantSettingsResponse
from tenantgate.schemas.user import UserPublic
from tenantgate.services.session_authority import SessionAuthority

router = APIRouter(prefix="/auth", tags=["authentication"])


def _set_refresh_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token,
        max_age=settings.refresh_cookie_max_age,
        path=settings.REFRESH_COOKIE_PATH,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )


def _clear_refresh_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        path=settings.REFRESH_COOKIE_PATH,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    registration: RegisterRequest,
    request: Request,
    response: Response,
    sessions: SessionAuthority = Depends(get_session_authority),
    settings: Settings = Depends(get_app_settings),
):
    """
    Register a user and sign them in.

    Every new user gets a workspace tenant of their own, administered by
    them. Other tenants are joined through invites.
    """
    created = sessions.register(
        registration.email,
        registration.password,
        registration.name,
        user_agent=request.headers.get("user-agent"),
        ip=client_ip(request),
    )
    _set_refresh_cookie(response, created.refresh_token, settings)
    return RegisterResponse(
        access_token=created.access_token,
        user=UserPublic.model_validate(created.user),
        tenant=TenantSettingsResponse.model_validate(created.tenant),
        membership=MembershipResponse.model_validate(created.membership),
    )


@router.post("/login", response_model=Token)
async def login(
    credentials: LoginRequest,
    request: Request,
    response: Response,
    sessions: SessionAuthority = Depends(get_session_authority),
    settings: Settings = Depends(get_app_settings),
):
    """
    Authenticate and open a refresh session.

    SECURITY: unknown email, wrong password and inactive account produce the
    same 401 body.
    """
    issued = sessions.login(
        credentials.email,
        credentials.password,
        user_agent=request.headers.get("user-agent"),
        ip=client_ip(request),
    )
    _set_refresh_cookie(response, issued.refresh_token, settings)
    return Token(access_token=issued.access_token, user=UserPublic.model_validate(issued.user))


@router.post("/refresh", response_model=Token)
async def refresh(
    request: Request,
    response: Response,
    sessions: SessionAuthority = Depends(get_session_authority),
    settings: Settings = Depends(get_app_settings),
):
    """Rotate the refresh cookie and return a fresh access token."""
    try:
        issued = sessions.refresh(request.cookies.get(settings.REFRESH_COOKIE_NAME))
    except RefreshRejected as exc:
        rejected = error_response(exc)
        _clear_refresh_cookie(rejected, settings)
        return rejected

    _set_refresh_cookie(response, issued.refresh_token, settings)
    return Token(access_token=issued.access_token, user=UserPublic.model_validate(issued.user))


@router.post("/logout", response_model=OkResponse)
async def logout(
    request: Request,
    response: Response,
    sessions: SessionAuthority = Depends(get_session_authority),
    settings: Settings = Depends(get_app_settings),
):
    """Best-effort: always 200 and always clears the cookie."""
    sessions.logout(request.cookies.get(settings.REFRESH_COOKIE_NAME))
    _clear_refresh_cookie(response, settings)
    return OkResponse()


@router.post("/logout-all", response_model=LogoutAllResponse)
async def logout_all(
    response: Response,
    auth: AuthContext = Depends(authenticate),
    sessions: SessionAuthority = Depends(get_session_authority),
    settings: Settings = Depends(get_app_settings),
):
    """Revoke every refresh session of the caller."""
    revoked = sessions.logout_all(auth.user_id)
    _clear_refresh_cookie(response, settings)
    return LogoutAllResponse(revoked=revoked)


@router.get("/me", response_model=UserPublic)
async def me(auth: AuthContext = Depends(authenticate)):
    return auth.user
