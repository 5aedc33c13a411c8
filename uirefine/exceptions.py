from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from typing import Any


class UIRefineError(Exception):
    """Base class for errors raised by the assistant."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Screenshot encoding

class EncodingError(UIRefineError):
    """The screenshot binary could not be read into a data URL."""

    status_code = 400


class FormatError(UIRefineError):
    """A string is not a well-formed ``data:<mime>;base64,<payload>`` URL."""

    status_code = 400


class ValidationError(UIRefineError):
    """A record has no usable screenshot data at analysis time."""

    status_code = 422


# Provider failures. Each one is stored on the record as a plain message.

class ProviderFailure(UIRefineError):
    status_code = 502


class ConfigError(ProviderFailure):
    status_code = 503


class AuthError(ProviderFailure):
    pass


class NetworkError(ProviderFailure):
    pass


class ProviderError(ProviderFailure):
    pass


class EmptyResponseError(ProviderFailure):
    pass


# Record store and lifecycle

class PersistenceCorruption(UIRefineError):
    """The persisted collection could not be decoded."""


class RecordNotFoundError(UIRefineError):
    status_code = 404


class TransitionError(UIRefineError):
    status_code = 409


class AnalysisInProgressError(TransitionError):
    pass


def create_error_response(error_message: str, status_code: int = 400) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": error_message
    }

def create_success_response(data: Any) -> dict:
    """Create a standardized success response"""
    return {
        "success": True,
        "data": data,
        "error": None
    }

async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail, exc.status_code)
    )

async def uirefine_exception_handler(request: Request, exc: UIRefineError) -> JSONResponse:
    """Map domain errors raised by a request onto the same error envelope"""
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.message, exc.status_code)
    )
