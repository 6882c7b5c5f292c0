"""Tests for the uniform result contract and the error normalizer."""

from typing import Any

import pytest
import requests

from evm_mcp.exceptions import ERROR_KINDS, InvalidAmountError, QuoteError, SubmissionError
from evm_mcp.results import (
    STAGE_ERROR_KINDS,
    ToolResult,
    describe_exception,
    extract_http_error_detail,
    normalise_exception,
    run_guarded,
)


class DummyResponse:
    def __init__(self, payload: Any, *, status_code: int = 400) -> None:
        self._payload = payload
        self.status_code = status_code

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


def _raise(exc: Exception) -> None:
    raise exc


def test_success_payload_is_flattened():
    result = run_guarded("reading", lambda: {"blockNumber": 12})

    assert result.ok
    assert result.to_dict() == {"ok": True, "blockNumber": 12}


def test_non_mapping_value_is_wrapped():
    assert run_guarded("reading", lambda: 5).to_dict() == {"ok": True, "result": 5}


def test_render_is_applied():
    result = run_guarded("reading", lambda: [1, 2], render=lambda value: {"count": len(value)})

    assert result.to_dict() == {"ok": True, "count": 2}


def test_render_failure_becomes_structured_result():
    def render(value: Any) -> dict[str, Any]:
        raise InvalidAmountError("Decimals must be a non-negative integer")

    result = run_guarded("validating", lambda: "0xabc", render=render)

    assert result.to_dict() == {
        "ok": False,
        "stage": "validating",
        "kind": "InvalidAmount",
        "message": "Decimals must be a non-negative integer",
    }


def test_foreign_render_failure_takes_kind_from_stage():
    result = run_guarded("submitting", lambda: None, render=lambda value: {"size": len(value)})

    assert (result.ok, result.stage, result.kind) == (False, "submitting", "SubmissionError")


def test_tool_error_keeps_its_stage_and_kind():
    result = run_guarded("validating", _raise, QuoteError("Amount is too low for this route"))

    assert result.to_dict() == {
        "ok": False,
        "stage": "quoting",
        "kind": "QuoteError",
        "message": "Amount is too low for this route",
    }


def test_submission_error_stage_is_preserved():
    error = SubmissionError("Approval reverted", stage="approving", tx_hash="0xabc")

    result = normalise_exception(error, "depositing")

    assert (result.stage, result.kind) == ("approving", "SubmissionError")


@pytest.mark.parametrize(
    ("stage", "kind"),
    [
        ("quoting", "QuoteError"),
        ("depositing", "DepositError"),
        ("fetching_spender", "SpenderLookupError"),
        ("quoting_swap", "SwapQuoteError"),
        ("submitting", "SubmissionError"),
    ],
)
def test_foreign_exception_takes_kind_from_stage(stage, kind):
    result = run_guarded(stage, _raise, RuntimeError("boom"))

    assert result.to_dict() == {"ok": False, "stage": stage, "kind": kind, "message": "boom"}
    assert result.details == {"exception": "RuntimeError"}


def test_every_stage_maps_to_a_known_kind():
    assert set(STAGE_ERROR_KINDS.values()) <= set(ERROR_KINDS)


def test_failure_dict_has_exactly_four_fields():
    failure = ToolResult.failure("quoting", "QuoteError", "nope", {"route": "x"})

    assert set(failure.to_dict()) == {"ok", "stage", "kind", "message"}


class TestHTTPErrorDetail:
    @pytest.mark.parametrize(
        ("body", "expected"),
        [
            ({"description": "insufficient liquidity"}, "insufficient liquidity"),
            ({"error": "Bad Request", "statusCode": 400}, "Bad Request"),
            ({"message": "Unsupported route"}, "Unsupported route"),
        ],
    )
    def test_json_body_field_is_used(self, body, expected):
        exc = requests.HTTPError("400 Client Error", response=DummyResponse(body))

        assert extract_http_error_detail(exc) == expected

    def test_non_json_body_falls_back_to_message(self):
        exc = requests.HTTPError("502 Server Error", response=DummyResponse(ValueError("no json")))

        assert extract_http_error_detail(exc) == "502 Server Error"

    def test_transport_error_without_response(self):
        exc = requests.ConnectionError("connection reset")

        assert extract_http_error_detail(exc) == "connection reset"


def test_describe_exception_reads_rpc_error_payload():
    exc = ValueError({"code": -32000, "message": "insufficient funds for gas * price + value"})

    assert describe_exception(exc) == "insufficient funds for gas * price + value"


def test_describe_exception_prefers_short_message():
    class ContractError(Exception):
        short_message = "execution reverted: TRANSFER_FAILED"

    assert describe_exception(ContractError("long text")) == "execution reverted: TRANSFER_FAILED"
