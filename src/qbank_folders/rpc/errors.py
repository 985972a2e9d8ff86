"""Error types raised by the QBank client and translation of call results."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from qbank_folders.rpc.models import (
    FIELD_CODE,
    FIELD_ERROR,
    FIELD_MESSAGE,
    FIELD_SUCCESS,
    FIELD_TYPE,
    CallError,
    CallResult,
    CallStatus,
)

logger = logging.getLogger(__name__)

# Server code for "already in that state" on object/folder association calls
NOOP_CODE = 99


class QBankError(Exception):
    """Base class for all QBank client errors."""


class QBankConnectionError(QBankError):
    """Raised when the API cannot be reached or returns a malformed envelope."""


class QBankApplicationError(QBankError):
    """Raised when the API explicitly reports that a call failed."""

    def __init__(
        self,
        message: str,
        code: int | None = None,
        error_type: str = "",
        call_name: str | None = None,
    ) -> None:
        super().__init__(f"QBank error {code}: {message}")
        self.message = message
        self.code = code
        self.error_type = error_type
        self.call_name = call_name


def _coerce_code(raw: Any) -> int | None:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def error_from_raw(raw: Any) -> CallError:
    """Decode the ``error`` sub-record of a failed call."""
    if not isinstance(raw, dict):
        return CallError(message=str(raw) if raw else "Unknown error")
    return CallError(
        message=str(raw.get(FIELD_MESSAGE, "Unknown error")),
        code=_coerce_code(raw.get(FIELD_CODE)),
        type=str(raw.get(FIELD_TYPE, "")),
    )


def result_from_raw(name: str, raw: dict[str, Any], noop_codes: Iterable[int] = ()) -> CallResult:
    """Build a CallResult from a raw call envelope.

    Args:
        name: Name used to report the call.
        raw: Envelope carrying a boolean ``success`` flag.
        noop_codes: Error codes that mean the call had nothing to do.

    Returns:
        CallResult with SUCCESS, NOOP or FAILURE status.

    Raises:
        QBankConnectionError: If the envelope carries no boolean success flag.
    """
    success = raw.get(FIELD_SUCCESS) if isinstance(raw, dict) else None
    if not isinstance(success, bool):
        logger.error("[result_from_raw] malformed call envelope; call:%s", name)
        raise QBankConnectionError(f"Malformed response for call '{name}': no success flag")
    if success:
        payload = {k: v for k, v in raw.items() if k != FIELD_SUCCESS}
        return CallResult(name=name, status=CallStatus.SUCCESS, payload=payload)
    error = error_from_raw(raw.get(FIELD_ERROR))
    status = CallStatus.NOOP if error.code in set(noop_codes) else CallStatus.FAILURE
    return CallResult(name=name, status=status, error=error)


def translate(result: CallResult, action: str) -> None:
    """Raise the application error carried by a failed call result.

    SUCCESS and NOOP results pass through. Failures are logged with the
    call name, code and type before being raised.

    Args:
        result: Result of one call.
        action: Short description of the public operation, used in logs.

    Raises:
        QBankApplicationError: If the result is a FAILURE.
    """
    if result.status is not CallStatus.FAILURE:
        return
    error = result.error or CallError(message="Unknown error")
    logger.error(
        "[%s] call failed; call:%s;code:%s;type:%s;message:%s",
        action,
        result.name,
        error.code,
        error.type,
        error.message,
    )
    raise QBankApplicationError(error.message, error.code, error.type, call_name=result.name)
