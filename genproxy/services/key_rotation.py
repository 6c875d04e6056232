"""Round-robin credential failover for upstream calls.

One logical request makes a single pass over the credential pool, starting at
the shared rotation cursor:

- transport failures (network, timeout, non-JSON body) move on to the next
  credential
- 401 / 403 / 429 and any 5xx move on to the next credential; they are
  specific to the credential (auth, quota) or transient
- any other non-2xx status is terminal: the request itself is at fault, so
  every credential would fail the same way
- a 2xx returns immediately

The cursor moves to the slot after the credential that produced the final
answer (success or terminal). If every credential failed retryably the cursor
is left where it was.

Concurrency: the cursor is read at the start and written at the end of a
dispatch under a lock, but the upstream call in between is not serialized.
Concurrent dispatches may therefore start on the same credential; rotation is
fair over many requests rather than strictly linearizable.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from genproxy.adapters.llm.base import AbstractUpstreamClient, UpstreamResponse
from genproxy.core.errors import (
    ConfigurationAppError,
    ExhaustedUpstreamAppError,
    TerminalUpstreamAppError,
    UpstreamTransportError,
)
from genproxy.services.payloads import extract_upstream_error

logger = logging.getLogger(__name__)

RETRYABLE_CLIENT_STATUSES = frozenset({401, 403, 429})


class AttemptOutcome(str, Enum):
    """Classification of a single upstream attempt."""

    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


def classify_status(status_code: int) -> AttemptOutcome:
    """Classify an upstream HTTP status.

    Args:
        status_code: HTTP status returned by the upstream.

    Returns:
        AttemptOutcome for that status.
    """
    if 200 <= status_code < 300:
        return AttemptOutcome.SUCCESS
    if status_code in RETRYABLE_CLIENT_STATUSES or status_code >= 500:
        return AttemptOutcome.RETRYABLE
    if 400 <= status_code < 500:
        return AttemptOutcome.TERMINAL
    # 1xx/3xx are not a usable answer from this credential/endpoint pairing.
    return AttemptOutcome.RETRYABLE


@dataclass(frozen=True)
class AttemptRecord:
    """Outcome of one attempt with one credential.

    The credential itself is never stored, only its index in the pool.
    """

    credential_index: int
    outcome: AttemptOutcome
    status_code: int | None = None
    detail: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key_index": self.credential_index,
            "outcome": self.outcome.value,
            "status": self.status_code,
            "error": self.detail,
        }


@dataclass
class DispatchSuccess:
    """Successful logical request."""

    payload: Any
    credential_index: int
    attempts: list[AttemptRecord] = field(default_factory=list)


class KeyRotationDispatcher:
    """Owns the rotation cursor and drives one pass over the credential pool."""

    def __init__(self, client: AbstractUpstreamClient, *, cursor: int = 0) -> None:
        self._client = client
        self._cursor = cursor
        self._lock = threading.Lock()

    @property
    def client(self) -> AbstractUpstreamClient:
        return self._client

    @property
    def cursor(self) -> int:
        with self._lock:
            return self._cursor

    def reset(self, cursor: int = 0) -> None:
        with self._lock:
            self._cursor = cursor

    def _start_index(self, pool_size: int) -> int:
        # The pool may have shrunk since the cursor was last written.
        with self._lock:
            return self._cursor % pool_size

    def _advance_past(self, index: int, pool_size: int) -> None:
        with self._lock:
            self._cursor = (index + 1) % pool_size

    async def dispatch(self, keys: Sequence[str], payload: dict[str, Any]) -> DispatchSuccess:
        """Run one logical request through the credential pool.

        Args:
            keys: Ordered credential pool for this request.
            payload: Upstream request body.

        Returns:
            DispatchSuccess with the upstream payload and the attempt log.

        Raises:
            ConfigurationAppError: If the pool is empty (no call is made).
            TerminalUpstreamAppError: If a credential got a non-retryable error.
            ExhaustedUpstreamAppError: If every credential failed retryably.
        """
        if not keys:
            raise ConfigurationAppError(
                code="no_credentials",
                message="Server not configured",
                details={"hint": "Set GENERATIVE_API_KEYS or GENERATIVE_API_KEY"},
            )

        pool_size = len(keys)
        start = self._start_index(pool_size)
        attempts: list[AttemptRecord] = []

        for attempt in range(pool_size):
            idx = (start + attempt) % pool_size
            try:
                response = await self._client.generate_content(keys[idx], payload)
            except UpstreamTransportError as exc:
                record = AttemptRecord(
                    credential_index=idx,
                    outcome=AttemptOutcome.RETRYABLE,
                    detail={"code": exc.code, "message": exc.message},
                )
                attempts.append(record)
                self._log_retryable(record, attempt, pool_size)
                continue

            outcome = classify_status(response.status_code)

            if outcome is AttemptOutcome.SUCCESS:
                attempts.append(
                    AttemptRecord(idx, outcome, status_code=response.status_code)
                )
                self._advance_past(idx, pool_size)
                logger.info(
                    "dispatch.success",
                    extra={
                        "key_index": idx,
                        "attempt_count": len(attempts),
                        "pool_size": pool_size,
                    },
                )
                return DispatchSuccess(
                    payload=response.body,
                    credential_index=idx,
                    attempts=attempts,
                )

            record = AttemptRecord(
                credential_index=idx,
                outcome=outcome,
                status_code=response.status_code,
                detail=_error_detail(response),
            )
            attempts.append(record)

            if outcome is AttemptOutcome.TERMINAL:
                self._advance_past(idx, pool_size)
                logger.warning(
                    "dispatch.terminal_failure",
                    extra={
                        "key_index": idx,
                        "status_code": response.status_code,
                        "attempt_count": len(attempts),
                    },
                )
                raise TerminalUpstreamAppError(
                    code="upstream_error",
                    message="Gemini API error",
                    details=record.detail,
                    status_code=response.status_code,
                )

            self._log_retryable(record, attempt, pool_size)

        logger.error(
            "dispatch.exhausted",
            extra={"pool_size": pool_size, "start_index": start},
        )
        raise ExhaustedUpstreamAppError(
            code="all_keys_failed",
            message="All API keys failed",
            attempts=[record.to_dict() for record in attempts],
        )

    def _log_retryable(self, record: AttemptRecord, attempt: int, pool_size: int) -> None:
        logger.warning(
            "dispatch.attempt_failed",
            extra={
                "key_index": record.credential_index,
                "status_code": record.status_code,
                "attempt": attempt + 1,
                "pool_size": pool_size,
            },
        )


def _error_detail(response: UpstreamResponse) -> Any:
    return extract_upstream_error(response.body) or {"http_status": response.status_code}
