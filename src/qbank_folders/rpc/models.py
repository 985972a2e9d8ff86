"""Data models for QBank remote calls, batches and their results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Envelope field names
FIELD_SUCCESS = "success"
FIELD_ERROR = "error"
FIELD_MESSAGE = "message"
FIELD_CODE = "code"
FIELD_TYPE = "type"

# Batch envelope field names
BATCH_FUNCTION = "batch"
BATCH_CALLS = "calls"
BATCH_RESULTS = "results"
CALL_NAME = "name"
CALL_FUNCTION = "function"
CALL_ARGUMENTS = "arguments"

REFERENCE_PREFIX = "$"


@dataclass(frozen=True)
class ResultReference:
    """Placeholder for a field of an earlier call's result in the same batch.

    Attributes:
        call_name: Name of the earlier call descriptor.
        field_path: Dotted path into that call's result record (e.g. "folderId").
    """

    call_name: str
    field_path: str

    def to_wire(self) -> str:
        """Render the reference the way the server chains batch calls."""
        return f"{REFERENCE_PREFIX}{self.call_name}.{self.field_path}"

    def resolve(self, payload: dict[str, Any]) -> Any:
        """Look up the referenced field in a result record.

        Raises:
            KeyError: If any segment of the field path is missing.
        """
        value: Any = payload
        for key in self.field_path.split("."):
            if not isinstance(value, dict) or key not in value:
                raise KeyError(self.to_wire())
            value = value[key]
        return value


@dataclass
class CallDescriptor:
    """A named remote call inside a batch."""

    name: str
    function: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def references(self) -> list[ResultReference]:
        """Return the arguments that refer to results of earlier calls."""
        return [v for v in self.arguments.values() if isinstance(v, ResultReference)]

    def to_wire(self) -> dict[str, Any]:
        """Render the call as a batch entry.

        Returns:
            The name, function and arguments of the call, references
            rendered as $call.field strings.
        """
        arguments = {
            key: value.to_wire() if isinstance(value, ResultReference) else value
            for key, value in self.arguments.items()
        }
        return {CALL_NAME: self.name, CALL_FUNCTION: self.function, CALL_ARGUMENTS: arguments}


class CallStatus(Enum):
    """Outcome of a single remote call."""

    SUCCESS = "success"
    NOOP = "noop"
    FAILURE = "failure"


@dataclass(frozen=True)
class CallError:
    """Failure details reported by the server for a call."""

    message: str
    code: int | None = None
    type: str = ""


@dataclass
class CallResult:
    """Result of one call, successful or not.

    ``payload`` holds the raw result record of a successful call (every key
    of the sub-result except the success flag). ``error`` is set for
    FAILURE and NOOP results.
    """

    name: str
    status: CallStatus
    payload: dict[str, Any] = field(default_factory=dict)
    error: CallError | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is CallStatus.SUCCESS


@dataclass
class BatchResult:
    """Results of a batch keyed by call name, in submission order."""

    results: dict[str, CallResult] = field(default_factory=dict)

    def __getitem__(self, name: str) -> CallResult:
        return self.results[name]

    def __contains__(self, name: object) -> bool:
        return name in self.results

    def __len__(self) -> int:
        return len(self.results)
