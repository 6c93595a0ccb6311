"""Response envelope helpers shared by every router."""

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

from models.exceptions import ModelError


logger = logging.getLogger(__name__)


def ok(
    data: Any = None,
    message: str = "OK",
    status_code: int = status.HTTP_200_OK,
    pagination: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Build the success envelope ``{success, message, data, pagination?}``."""
    body: Dict[str, Any] = {"success": True, "message": message, "data": data}
    if pagination is not None:
        body["pagination"] = pagination
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def error(exc: ModelError) -> JSONResponse:
    """Map a domain error onto its status and stable code."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, "code": exc.code},
    )


def server_error(exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "message": "Server error. Please try again later.",
            "code": "INTERNAL_ERROR",
            "error": str(exc),
        },
    )


def respond(
    action: Callable[[], Any],
    message: str,
    status_code: int = status.HTTP_200_OK,
    context: str = "",
) -> JSONResponse:
    """Run a service call and wrap its outcome in the envelope.

    Results shaped ``{"items", "pagination", ...}`` are unpacked so the
    pagination block sits at the top level of the response.
    """
    try:
        result = action()
    except ModelError as exc:
        logger.info("Request rejected code=%s context=%s message=%s", exc.code, context, exc.message)
        return error(exc)
    except Exception as exc:
        logger.exception("Endpoint failed context=%s", context)
        return server_error(exc)

    if isinstance(result, dict) and "items" in result and "pagination" in result:
        body = {key: value for key, value in result.items() if key not in ("items", "pagination")}
        body.update(
            {"success": True, "message": message, "data": result["items"], "pagination": result["pagination"]}
        )
        return JSONResponse(status_code=status_code, content=jsonable_encoder(body))
    return ok(result, message, status_code)
