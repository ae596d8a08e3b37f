"""
auth/outcomes.py -- Result type returned by every AuthFlowController operation.

An operation returns either a Reply (the response to send) or a Failure (one
of a closed set of error kinds). The flow code never raises for an expected
condition such as a wrong password or an unknown email; it returns a Failure
and the API layer's single responder turns it into the JSON envelope.

Unexpected errors (database down, programming errors) are still exceptions
and reach the generic 500 handler in api/main.py.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    UNAUTHORIZED = "unauthorized"
    DELIVERY = "delivery_failed"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.DELIVERY: 502,
}


@dataclass(frozen=True)
class Failure:
    """A rejected operation. status_code is fixed by kind."""

    kind: ErrorKind
    message: str
    data: dict[str, Any] | None = None

    success = False

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]


@dataclass(frozen=True)
class Reply:
    """A response produced directly by the flow.

    Usually a success. The one non-success Reply is verify-email's
    "Email already verified" (400, success=False): a replayed verification
    link is reported to the client but is not an error condition.
    """

    message: str
    data: dict[str, Any] | None = None
    status_code: int = 200
    success: bool = True


Outcome = Union[Reply, Failure]
