"""
api/responder.py -- The single place where flow outcomes become HTTP responses.

Every route hands its Outcome to respond(); the exception handlers in
api/main.py call envelope() for the same JSON shape, so clients always see
{success, message, data?} regardless of where a response came from.

Account dataclasses inside data are replaced with AccountResponse dicts,
which leaves the password hash out.
"""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse

from api.models import AccountResponse, ApiResponse
from auth.models import Account
from auth.outcomes import Outcome


def _public(value: Any) -> Any:
    if isinstance(value, Account):
        return AccountResponse.from_account(value).model_dump()
    return value


def envelope(status_code: int, success: bool, message: str, data: dict[str, Any] | None = None) -> JSONResponse:
    body = ApiResponse(success=success, message=message, data=data)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def respond(outcome: Outcome) -> JSONResponse:
    """Render a Reply or Failure with its status code.

    Cache-Control: no-store is set on every response -- bodies can carry
    session, verification or reset tokens.
    """
    data = {k: _public(v) for k, v in outcome.data.items()} if outcome.data else None
    resp = envelope(outcome.status_code, outcome.success, outcome.message, data)
    resp.headers["Cache-Control"] = "no-store"
    return resp
