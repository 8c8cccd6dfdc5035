"""
═══════════════════════════════════════════════════════════════════════════════
ShopEMX — Иерархия доменных ошибок (Custom Exception Hierarchy)
═══════════════════════════════════════════════════════════════════════════════

Сервисы бросают исключения из этой иерархии, а HTTP-маппинг кодов
выполняется в одном месте — ``shopemx.main:shop_error_handler``.
Ошибки валидации (неверные данные) и ошибки бизнес-правил (статус,
владелец, код) различаются типом и кодом.
"""


class ShopError(Exception):
    """
    Базовое исключение для всех доменных ошибок ShopEMX.

    Атрибуты
    ────────
        message (str):  Описание ошибки. Передаётся клиенту в JSON.
        code (str):     Строковый код. Используется для маппинга на HTTP-статус.
        details (dict): Дополнительные данные (entity, id и т.д.).
        field (str):    Поле формы, к которому относится ошибка (если есть).
        errors (list):  Детализированный список нарушений (если есть).
    """

    def __init__(
        self,
        message: str,
        code: str = "SHOP_ERROR",
        details: dict | None = None,
        field: str | None = None,
        errors: list | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        self.field = field
        self.errors = errors
        super().__init__(message)


class AuthenticationError(ShopError):
    """Ошибка аутентификации: 401 Unauthorized."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="SHOP_AUTH_ERROR")


class AuthorizationError(ShopError):
    """Ошибка авторизации (роль, владелец, верификация): 403 Forbidden."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, code="SHOP_AUTHZ_ERROR")


class NotFoundError(ShopError):
    """Сущность не найдена: 404 Not Found."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            message=f"{entity} not found: {entity_id}",
            code="SHOP_NOT_FOUND",
            details={"entity": entity, "id": entity_id},
        )


class ConflictError(ShopError):
    """Конфликт с текущим состоянием: 409 Conflict."""

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        field: str | None = None,
        code: str = "SHOP_CONFLICT",
    ):
        super().__init__(message, code=code, details=details, field=field)


class InvalidStateError(ConflictError):
    """Переход жизненного цикла недопустим из текущего статуса: 409."""

    def __init__(self, entity: str, current: str, expected: str | None = None):
        message = f"{entity} is in status {current}"
        if expected:
            message += f", expected {expected}"
        super().__init__(
            message,
            details={"entity": entity, "status": current, "expected": expected},
            code="SHOP_INVALID_STATE",
        )


class ValidationError(ShopError):
    """Ошибка доменной валидации: 400 Bad Request."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        errors: list | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            message,
            code="SHOP_VALIDATION_ERROR",
            details=details,
            field=field,
            errors=errors,
        )


class InvalidCodeError(ShopError):
    """Неверный или просроченный код подтверждения: 400 Bad Request."""

    def __init__(self, message: str = "Invalid confirmation code", field: str | None = None):
        super().__init__(message, code="SHOP_INVALID_CODE", field=field)


class RateLimitedError(ShopError):
    """Слишком частая повторная отправка: 429 Too Many Requests."""

    def __init__(self, message: str = "Too many attempts, please wait"):
        super().__init__(message, code="SHOP_RATE_LIMITED")


class ExternalServiceError(ShopError):
    """Сбой внешнего сервиса (SMS, email, PDF, хранилище): 500."""

    def __init__(self, service: str, message: str):
        super().__init__(
            message,
            code="SHOP_EXTERNAL_ERROR",
            details={"service": service},
        )


__all__ = [
    "ShopError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "InvalidStateError",
    "ValidationError",
    "InvalidCodeError",
    "RateLimitedError",
    "ExternalServiceError",
]
