"""Call dispatcher — single calls and batches with result references."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any

from qbank_folders.rpc.errors import QBankConnectionError, result_from_raw, translate
from qbank_folders.rpc.models import (
    BATCH_CALLS,
    BATCH_FUNCTION,
    BATCH_RESULTS,
    FIELD_SUCCESS,
    BatchResult,
    CallDescriptor,
    CallError,
    CallResult,
    CallStatus,
    ResultReference,
)
from qbank_folders.rpc.transport import HttpTransport, http_transport_from_config

if TYPE_CHECKING:
    from qbank_folders.config import AppConfig

logger = logging.getLogger(__name__)

# Error reported for a batch call that was skipped because a reference could not be resolved
DEPENDENCY_FAILED_CODE = -1
DEPENDENCY_FAILED_TYPE = "DependencyFailed"
MISSING_RESULT_TYPE = "MissingResult"


class Dispatcher:
    """Executes remote calls through a transport.

    With ``server_batch`` enabled a batch is one ``batch`` round trip and the
    server resolves result references. Otherwise the batch is executed call
    by call and references are substituted locally.
    """

    def __init__(self, transport: HttpTransport, server_batch: bool = True) -> None:
        self._transport = transport
        self._server_batch = server_batch

    def call_result(
        self,
        operation: str,
        arguments: dict[str, Any],
        noop_codes: Iterable[int] = (),
    ) -> CallResult:
        """Perform a single call and return its result without raising on failure.

        Raises:
            QBankConnectionError: If the transport fails or the envelope is malformed.
        """
        raw = self._transport.call(operation, arguments)
        return result_from_raw(operation, raw, noop_codes)

    def call(self, operation: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Perform a single call.

        Args:
            operation: Remote operation name.
            arguments: Call arguments.

        Returns:
            The result record of the call (envelope without the success flag).

        Raises:
            QBankConnectionError: If the transport fails or the envelope is malformed.
            QBankApplicationError: If the server reports that the call failed.
        """
        result = self.call_result(operation, arguments)
        translate(result, operation)
        return result.payload

    def call_batch(self, descriptors: Sequence[CallDescriptor]) -> BatchResult:
        """Execute several named calls, later ones possibly referencing earlier ones.

        Sub-call failures never raise; each is recorded in the returned
        BatchResult for the caller to translate.

        Raises:
            ValueError: If call names repeat or a reference does not point
                to an earlier call.
            QBankConnectionError: If the transport fails or the envelope is malformed.
        """
        _validate(descriptors)
        if self._server_batch:
            return self._server_chained(descriptors)
        return self._locally_chained(descriptors)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _server_chained(self, descriptors: Sequence[CallDescriptor]) -> BatchResult:
        calls = [descriptor.to_wire() for descriptor in descriptors]
        raw = self._transport.call(BATCH_FUNCTION, {BATCH_CALLS: calls})
        raw_results = raw.get(BATCH_RESULTS)
        if not isinstance(raw_results, dict):
            if raw.get(FIELD_SUCCESS) is False:
                translate(result_from_raw(BATCH_FUNCTION, raw), "call_batch")
            logger.error("[call_batch] batch response has no results mapping")
            raise QBankConnectionError("Malformed batch response: no results mapping")

        batch = BatchResult()
        for descriptor in descriptors:
            raw_result = raw_results.get(descriptor.name)
            if raw_result is None:
                logger.warning("[call_batch] no result for call; call:%s", descriptor.name)
                batch.results[descriptor.name] = CallResult(
                    name=descriptor.name,
                    status=CallStatus.FAILURE,
                    error=CallError(
                        message=f"No result returned for call '{descriptor.name}'",
                        type=MISSING_RESULT_TYPE,
                    ),
                )
                continue
            batch.results[descriptor.name] = result_from_raw(descriptor.name, raw_result)
        return batch

    def _locally_chained(self, descriptors: Sequence[CallDescriptor]) -> BatchResult:
        batch = BatchResult()
        for descriptor in descriptors:
            try:
                arguments = _resolve_arguments(descriptor, batch)
            except KeyError as exc:
                logger.warning(
                    "[call_batch] skipping call with unresolved reference; call:%s;reference:%s",
                    descriptor.name,
                    exc.args[0],
                )
                batch.results[descriptor.name] = CallResult(
                    name=descriptor.name,
                    status=CallStatus.FAILURE,
                    error=CallError(
                        message=f"Reference {exc.args[0]} could not be resolved",
                        code=DEPENDENCY_FAILED_CODE,
                        type=DEPENDENCY_FAILED_TYPE,
                    ),
                )
                continue
            raw = self._transport.call(descriptor.function, arguments)
            batch.results[descriptor.name] = result_from_raw(descriptor.name, raw)
        return batch


def _validate(descriptors: Sequence[CallDescriptor]) -> None:
    """Check names are unique and references only point backwards."""
    seen: set[str] = set()
    for descriptor in descriptors:
        if descriptor.name in seen:
            raise ValueError(f"Duplicate call name in batch: {descriptor.name}")
        for reference in descriptor.references():
            if reference.call_name not in seen:
                raise ValueError(
                    f"Call '{descriptor.name}' references '{reference.call_name}'"
                    " which is not an earlier call in the batch"
                )
        seen.add(descriptor.name)


def _resolve_arguments(descriptor: CallDescriptor, batch: BatchResult) -> dict[str, Any]:
    """Substitute references with fields of earlier successful results.

    Raises:
        KeyError: If a referenced call did not succeed or lacks the field.
    """
    arguments: dict[str, Any] = {}
    for key, value in descriptor.arguments.items():
        if isinstance(value, ResultReference):
            source = batch.results[value.call_name]
            if not source.succeeded:
                raise KeyError(value.to_wire())
            value = value.resolve(source.payload)
        arguments[key] = value
    return arguments


def dispatcher_from_config(config: AppConfig) -> Dispatcher:
    """Construct a Dispatcher, and its transport, from application configuration.

    Args:
        config: Application configuration instance.

    Returns:
        Configured Dispatcher instance.
    """
    return Dispatcher(
        transport=http_transport_from_config(config),
        server_batch=config.server_batch,
    )
