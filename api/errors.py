"""Mapping of application errors to JSON error responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.schemas import ErrorResponse
from core.exceptions import AgentNotFoundError, InvalidRequestError, RAGError

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content=ErrorResponse(error=message).model_dump()
    )


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    reasons = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    )
    logger.warning("Rejected malformed request to %s: %s", request.url.path, reasons)
    return error_response(400, f"Invalid request body: {reasons}")


async def _invalid_request_handler(
    request: Request, exc: InvalidRequestError
) -> JSONResponse:
    logger.warning("Rejected request to %s: %s", request.url.path, exc.message)
    return error_response(400, exc.message)


async def _agent_not_found_handler(
    request: Request, exc: AgentNotFoundError
) -> JSONResponse:
    return error_response(404, exc.message)


async def _rag_error_handler(request: Request, exc: RAGError) -> JSONResponse:
    logger.error("Request to %s failed: %s", request.url.path, exc)
    return error_response(500, exc.message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(InvalidRequestError, _invalid_request_handler)
    app.add_exception_handler(AgentNotFoundError, _agent_not_found_handler)
    app.add_exception_handler(RAGError, _rag_error_handler)
