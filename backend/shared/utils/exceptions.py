"""
Domain exceptions raised by the floor services and mapped to HTTP by status code:

    ValidationError, InvalidStateError  400
    UnauthorizedError                   401 (staff code did not resolve)
    NotFoundError                       404
    ConflictError                       409 (retryable races carry Retry-After)
    InternalError, DatabaseError        500 (no driver detail in the body)

Usage:
    from shared.utils.exceptions import NotFoundError, ValidationError

    raise NotFoundError("Mesa", table_id)
    raise ValidationError("La cantidad debe ser mayor a 0", field="quantity")
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All domain exceptions inherit from this class so that every error
    is logged once, with context, at the point where it is raised.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Producto", 123)
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} con ID {entity_id} no encontrado"
        else:
            detail = f"{entity} no encontrado"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class UnauthorizedError(AppException):
    """
    Actor could not be resolved to an active staff member (401).

    Usage:
        raise UnauthorizedError("Mesero M99 no encontrado o inactivo")
    """

    def __init__(self, detail: str = "No autorizado", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class ValidationError(AppException):
    """
    Input validation error (400).

    Usage:
        raise ValidationError("Cantidad inválida", field="quantity", value=-1)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidStateError(ValidationError):
    """Entity is in an invalid state for the operation."""

    def __init__(self, entity: str, current_state: str, expected_states: list[str] | None = None, **log_context: Any):
        if expected_states:
            states_str = ", ".join(expected_states)
            detail = f"{entity} está en estado '{current_state}', se esperaba: {states_str}"
        else:
            detail = f"{entity} no puede estar en estado '{current_state}' para esta operación"

        super().__init__(detail, entity=entity, current_state=current_state, **log_context)


class ConflictError(AppException):
    """
    Resource conflict error (409).

    retryable=True signals that the caller lost a race and may repeat
    the request unchanged; a Retry-After header is attached.
    """

    def __init__(self, detail: str, retryable: bool = False, retry_after: int = 1, **log_context: Any):
        self.retryable = retryable
        headers = {"Retry-After": str(retry_after)} if retryable else None
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            headers=headers,
            retryable=retryable,
            **log_context,
        )


class InternalError(AppException):
    """
    Internal server error (500).

    Usage:
        raise InternalError("Failed to dispatch order", session_id=123)
    """

    def __init__(self, detail: str = "Error interno del servidor", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


class DatabaseError(InternalError):
    """Database operation failed. The detail never carries driver output."""

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Error de base de datos durante {operation}. Por favor intente de nuevo."
        super().__init__(detail, operation=operation, **log_context)

