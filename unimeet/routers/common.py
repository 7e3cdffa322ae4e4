# unimeet/routers/common.py
from enum import Enum

from fastapi import HTTPException

from unimeet.services.errors import TransitionError


def conflict(error: Enum) -> HTTPException:
    """
    Typed business outcome -> HTTP error.

    NOT_AUTHORIZED is 403 so callers can tell "not allowed" from
    "not possible"; every other code is a 409 conflict.
    """
    status_code = 403 if error == TransitionError.NOT_AUTHORIZED else 409
    return HTTPException(status_code=status_code, detail={"error": error.value})


def iso(value):
    return value.isoformat() if value is not None else None
