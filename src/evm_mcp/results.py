"""Uniform result contract and exception normalisation."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

import requests

from .exceptions import EVMToolError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Kind assigned to foreign exceptions, by the stage they escaped from
STAGE_ERROR_KINDS = {
    "configuring": "ConfigurationError",
    "validating": "ValidationError",
    "resolving_network": "UnsupportedNetwork",
    "connecting": "NetworkInitError",
    "resolving_address": "NameResolutionError",
    "reading": "RPCError",
    "quoting": "QuoteError",
    "resolving_token": "QuoteError",
    "approving": "SubmissionError",
    "depositing": "DepositError",
    "filling": "DepositError",
    "fetching_spender": "SpenderLookupError",
    "quoting_swap": "SwapQuoteError",
    "submitting": "SubmissionError",
}


@dataclass
class ToolResult:
    """Outcome of a public operation: a payload on success, a tagged error otherwise."""

    ok: bool
    payload: dict[str, Any] = field(default_factory=dict)
    stage: str | None = None
    kind: str | None = None
    message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, payload: Mapping[str, Any] | None = None) -> ToolResult:
        return cls(ok=True, payload=dict(payload or {}))

    @classmethod
    def failure(
        cls, stage: str, kind: str, message: str, details: Mapping[str, Any] | None = None
    ) -> ToolResult:
        return cls(ok=False, stage=stage, kind=kind, message=message, details=dict(details or {}))

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"ok": True, **self.payload}
        return {"ok": False, "stage": self.stage, "kind": self.kind, "message": self.message}


def extract_http_error_detail(exc: requests.RequestException) -> str:
    """Pull ``description``/``error`` out of an HTTP error body, else the transport message."""
    response = getattr(exc, "response", None)
    if response is not None:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, Mapping):
            for key in ("description", "error", "message"):
                detail = body.get(key)
                if isinstance(detail, str) and detail:
                    return detail
    return str(exc) or exc.__class__.__name__


def describe_exception(exc: BaseException) -> str:
    """Best human-readable message for an arbitrary exception."""
    if isinstance(exc, EVMToolError):
        return exc.message
    if isinstance(exc, requests.RequestException):
        return extract_http_error_detail(exc)

    for attribute in ("short_message", "message"):
        value = getattr(exc, attribute, None)
        if isinstance(value, str) and value:
            return value

    if exc.args and isinstance(exc.args[0], Mapping):
        message = exc.args[0].get("message")
        if isinstance(message, str) and message:
            return message

    return str(exc) or exc.__class__.__name__


def normalise_exception(exc: BaseException, stage: str) -> ToolResult:
    """Convert any exception into a failed ``ToolResult``.

    Tool errors keep their own stage and kind. Anything else takes its kind from
    ``stage``.
    """
    if isinstance(exc, EVMToolError):
        resolved_stage = exc.stage or stage
        return ToolResult.failure(resolved_stage, exc.kind, exc.message, exc.details)

    kind = STAGE_ERROR_KINDS.get(stage, "SubmissionError")
    return ToolResult.failure(
        stage,
        kind,
        describe_exception(exc),
        {"exception": exc.__class__.__name__},
    )


def run_guarded(
    stage: str,
    operation: Callable[..., T],
    *args: Any,
    render: Callable[[T], Mapping[str, Any]] | None = None,
    **kwargs: Any,
) -> ToolResult:
    """Run ``operation`` and wrap its return value or failure in a ``ToolResult``.

    ``render`` runs under the same guard, so a failure while building the
    payload is reported like any other.
    """
    try:
        value = operation(*args, **kwargs)
        if render is not None:
            return ToolResult.success(render(value))
    except EVMToolError as exc:
        logger.error("%s failed at %s: %s", stage, exc.stage or stage, exc.message)
        return normalise_exception(exc, stage)
    except Exception as exc:
        logger.exception("Unexpected %s failure", stage)
        return normalise_exception(exc, stage)

    if isinstance(value, Mapping):
        return ToolResult.success(value)
    return ToolResult.success({"result": value})
