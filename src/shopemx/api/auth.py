"""
shopemx/api/auth.py — Эндпоинты аутентификации и двухфакторной проверки.

Вход и регистрация отвечают редиректом 303 на ``{app_url}/verify`` и
ставят cookie сессии; выход удаляет cookie и ведёт на главную.
"""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from shopemx.config import get_settings
from shopemx.dependencies import get_current_user, get_optional_user
from shopemx.models.user import (
    LoginRequest,
    PasswordCheckRequest,
    PhoneRequest,
    RegisterRequest,
    SendCodeRequest,
    TwoFactorRequest,
    UserRead,
    VerifyCodeRequest,
)
from shopemx.services import auth_service, verification_service

router = APIRouter(prefix="/auth", tags=["auth"])

UNKNOWN = "unknown"


def _session_redirect(url: str, token: str) -> RedirectResponse:
    settings = get_settings()
    response = RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_expire_days * 24 * 60 * 60,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else UNKNOWN


@router.post("/check-phone", summary="Проверить, зарегистрирован ли телефон")
async def check_phone(body: PhoneRequest):
    await auth_service.check_phone(body.phone)
    return {"message": "User exists"}


@router.post(
    "/login",
    status_code=status.HTTP_303_SEE_OTHER,
    summary="Вход по телефону и паролю → коды подтверждения",
)
async def login(body: LoginRequest):
    """Шаг 1 — пароль. Дальше пользователь вводит коды на странице /verify."""
    user = await auth_service.login(body.phone, body.password)
    token = auth_service.create_session_token(user.user_id)
    return _session_redirect(f"{get_settings().app_url}/verify", token)


@router.post(
    "/register",
    status_code=status.HTTP_303_SEE_OTHER,
    summary="Регистрация нового пользователя",
)
async def register(body: RegisterRequest, request: Request):
    user = await auth_service.register(
        body,
        ip=_client_ip(request),
        user_agent=request.headers.get("user-agent", UNKNOWN),
    )
    token = auth_service.create_session_token(user.user_id)
    return _session_redirect(f"{get_settings().app_url}/verify", token)


@router.post("/verify", summary="Шаг 2 — коды из SMS и email")
async def verify(
    body: TwoFactorRequest,
    request: Request,
    user: UserRead = Depends(get_current_user),
):
    await auth_service.complete_two_factor(
        user,
        body.sms_code,
        body.email_code,
        ip=_client_ip(request),
        user_agent=request.headers.get("user-agent", UNKNOWN),
    )
    return {"message": "Verification successful"}


@router.post("/send-verification-code", summary="Повторно отправить код")
async def send_verification_code(
    body: SendCodeRequest,
    user: UserRead = Depends(get_current_user),
):
    await verification_service.resend(user, body.type)
    return {"message": "Verification code sent"}


@router.post("/verify-code", summary="Проверить одиночный код")
async def verify_code(
    body: VerifyCodeRequest,
    user: UserRead = Depends(get_current_user),
):
    await auth_service.verify_code(user, body.code, body.type)
    return {"message": "Code verified"}


@router.post("/verify-password", summary="Повторно подтвердить пароль")
async def verify_password(
    body: PasswordCheckRequest,
    user: UserRead = Depends(get_current_user),
):
    await auth_service.confirm_password(user.user_id, body.password)
    return {"message": "Password confirmed"}


@router.api_route("/logout", methods=["GET", "POST"], summary="Выход")
async def logout(user: UserRead | None = Depends(get_optional_user)):
    if user is not None:
        await auth_service.logout(user.user_id)
    settings = get_settings()
    response = RedirectResponse(f"{settings.app_url}/", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(settings.session_cookie_name, path="/")
    return response
