"""1inch Aggregation Protocol HTTP client."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import requests
from web3 import Web3

from ..base import SwapAggregator
from ..exceptions import ConfigurationError, SpenderLookupError, SwapQuoteError
from ..results import extract_http_error_detail
from .config import SwapConfig

logger = logging.getLogger(__name__)


class OneInchAggregator(SwapAggregator):
    """Thin wrapper over ``/approve/spender`` and ``/swap`` of the 1inch v6 API."""

    def __init__(self, config: SwapConfig, session: requests.Session, *, request_timeout: float) -> None:
        self._config = config
        self._session = session
        self._request_timeout = request_timeout

    def _headers(self) -> dict[str, str]:
        if not self._config.api_key:
            raise ConfigurationError("Missing 1inch API key (ONEINCH_API_KEY)", setting="ONEINCH_API_KEY")
        return {"Authorization": f"Bearer {self._config.api_key}", "Accept": "application/json"}

    def _url(self, chain_id: int, path: str) -> str:
        return f"{self._config.api_url.rstrip('/')}/{chain_id}/{path}"

    def get_spender(self, chain_id: int) -> str:
        url = self._url(chain_id, "approve/spender")
        headers = self._headers()
        logger.debug("Fetching 1inch spender from %s", url)

        try:
            response = self._session.get(url, headers=headers, timeout=self._request_timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            detail = extract_http_error_detail(exc)
            logger.error("Failed to fetch 1inch spender address: %s", detail)
            raise SpenderLookupError(f"Error fetching 1inch spender: {detail}") from exc
        except ValueError as exc:
            raise SpenderLookupError("Error fetching 1inch spender: response is not valid JSON") from exc

        address = payload.get("address") if isinstance(payload, Mapping) else None
        if not isinstance(address, str) or not Web3.is_address(address):
            raise SpenderLookupError(
                "Error fetching 1inch spender: response has no valid address",
                details={"response": payload},
            )
        return address

    def get_swap(self, chain_id: int, params: Mapping[str, Any]) -> Mapping[str, Any]:
        url = self._url(chain_id, "swap")
        headers = self._headers()
        logger.debug("Fetching 1inch swap data from %s params=%s", url, dict(params))

        try:
            response = self._session.get(url, params=dict(params), headers=headers, timeout=self._request_timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            detail = extract_http_error_detail(exc)
            logger.error("Error fetching swap data from 1inch: %s", detail)
            raise SwapQuoteError(f"Error fetching swap data from 1inch: {detail}") from exc
        except ValueError as exc:
            raise SwapQuoteError("Error fetching swap data from 1inch: response is not valid JSON") from exc

        return payload
