"""
Application exception taxonomy and FastAPI exception handlers

Services raise these; controllers let them propagate and the handlers
registered in ``register_exception_handlers`` turn them into one JSON shape:

    {"type": "error", "code": "WRITE_ERROR", "message": "...", "detail": [...]}
"""

from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar, Union
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class AppException(Exception):
    """Base class for every error the service reports to callers"""
    type = "error"
    code = "UNKNOWN_ERROR"
    http_status = 500
    message = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        detail: Union[None, str, Iterable[Any]] = None,
        code: Optional[str] = None
    ):
        if message:
            self.message = message
        if code:
            self.code = code

        if detail is None:
            self.detail = []
        elif isinstance(detail, str):
            self.detail = [detail]
        else:
            self.detail = list(detail)

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "code": self.code,
            "message": self.message,
            "detail": self.detail,
        }


class AuthenticationRequired(AppException):
    """No authenticated actor is present"""
    code = "AUTHENTICATION_REQUIRED"
    http_status = 401
    message = "You must be logged in to perform this action."


class ValidationFailed(AppException):
    """Input failed field-level validation; nothing was written"""
    code = "VALIDATION_ERROR"
    http_status = 422
    message = "Input validation failed"

    @classmethod
    def from_pydantic(cls, error: Union[ValidationError, RequestValidationError]) -> "ValidationFailed":
        return cls(detail=field_errors(error.errors()))

    @property
    def fields(self) -> List[str]:
        return [item["field"] for item in self.detail]


class WriteError(AppException):
    """The document store rejected or failed a write"""
    code = "WRITE_ERROR"
    http_status = 502
    message = "The write could not be completed."


class NotFound(AppException):
    code = "NOT_FOUND"
    http_status = 404
    message = "Resource not found"


def field_errors(errors: Iterable[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Flatten pydantic error dicts into ``{field, message}`` pairs"""
    flattened = []
    for error in errors:
        # Request errors are prefixed with their location ("body", "query")
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        flattened.append({
            "field": ".".join(loc) or "__root__",
            "message": error.get("msg", "Invalid value"),
        })
    return flattened


def validate_payload(model_cls: Type[M], data: Union[M, Dict[str, Any]]) -> M:
    """Coerce ``data`` into ``model_cls`` or raise ValidationFailed"""
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed.from_pydantic(e) from e


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationFailed.from_pydantic(exc)
    return JSONResponse(status_code=error.http_status, content=error.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
