"""Centralized error transformation for API routes.

Maps OAuthLoginError subclasses to JSON error responses of the form
``{"errors": [message], "code": code}``.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from oauth_login.errors import InvalidRequestError, OAuthLoginError


def error_response(error: OAuthLoginError) -> JSONResponse:
    """Render an OAuthLoginError with the status its type carries.

    Args:
        error: The error to map.

    Returns:
        JSONResponse with status code, message and machine code.
    """
    return JSONResponse(
        status_code=error.status_code,
        content={"errors": [error.message], "code": error.code},
    )


async def oauth_login_error_handler(request: Request, exc: OAuthLoginError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code}")
    return error_response(exc)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Malformed bodies use the same error shape as every other failure
    messages = []
    for detail in exc.errors():
        loc = ".".join(str(part) for part in detail["loc"] if part != "body")
        messages.append(f"{loc}: {detail['msg']}" if loc else detail["msg"])
    return error_response(InvalidRequestError("; ".join(messages)))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OAuthLoginError, oauth_login_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
