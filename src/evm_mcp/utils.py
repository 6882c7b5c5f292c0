"""Amount codec and serialisation helpers."""

import json
import re
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any
from urllib.parse import urlsplit

from hexbytes import HexBytes

from .exceptions import ConfigurationError, InvalidAmountError
from .types import TokenAmount

_DECIMAL_PATTERN = re.compile(r"^(?P<whole>\d*)(?:\.(?P<fraction>\d*))?$")


def to_base_units(human_amount: str, decimals: int) -> int:
    """Convert a decimal string into integer base units.

    ``"1.5"`` with 18 decimals becomes ``1500000000000000000``. Trailing zeros
    past ``decimals`` are accepted, any other extra precision is rejected.
    """
    if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
        raise InvalidAmountError("Decimals must be a non-negative integer", field="decimals", value=decimals)

    if not isinstance(human_amount, str):
        raise InvalidAmountError("Amount must be a decimal string", field="amount", value=human_amount)

    text = human_amount.strip()
    if text.startswith("-"):
        raise InvalidAmountError("Amount cannot be negative", field="amount", value=human_amount)

    match = _DECIMAL_PATTERN.match(text)
    if match is None:
        raise InvalidAmountError("Amount is not a decimal number", field="amount", value=human_amount)

    whole = match.group("whole") or ""
    fraction = (match.group("fraction") or "").rstrip("0")
    if not whole and not match.group("fraction"):
        raise InvalidAmountError("Amount is not a decimal number", field="amount", value=human_amount)

    if len(fraction) > decimals:
        raise InvalidAmountError(
            f"Amount has more than {decimals} fractional digits",
            field="amount",
            value=human_amount,
            details={"decimals": decimals},
        )

    return int(whole or "0") * 10**decimals + int(fraction.ljust(decimals, "0") or "0")


def to_human_units(raw: int, decimals: int) -> str:
    """Format integer base units as a decimal string without trailing zeros."""
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
        raise InvalidAmountError("Raw amount must be a non-negative integer", field="raw", value=raw)
    if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
        raise InvalidAmountError("Decimals must be a non-negative integer", field="decimals", value=decimals)

    if decimals == 0:
        return str(raw)

    whole, fraction = divmod(raw, 10**decimals)
    fraction_text = str(fraction).zfill(decimals).rstrip("0")
    if not fraction_text:
        return str(whole)
    return f"{whole}.{fraction_text}"


def token_amount(human_amount: str, decimals: int) -> TokenAmount:
    """Build a ``TokenAmount`` whose fields agree with each other."""
    raw = to_base_units(human_amount, decimals)
    return TokenAmount(raw=raw, formatted=to_human_units(raw, decimals), decimals=decimals)


def token_amount_from_raw(raw: int, decimals: int) -> TokenAmount:
    return TokenAmount(raw=raw, formatted=to_human_units(raw, decimals), decimals=decimals)


def parse_positive_base_units(amount: str | int, field: str = "amount") -> int:
    """Parse an amount already expressed in base units; it must be a positive integer."""
    if isinstance(amount, bool):
        raise InvalidAmountError("Amount must be an integer in base units", field=field, value=amount)
    if isinstance(amount, int):
        value = amount
    elif isinstance(amount, str) and amount.strip().isdigit():
        value = int(amount.strip())
    else:
        raise InvalidAmountError("Amount must be an integer in base units", field=field, value=amount)

    if value <= 0:
        raise InvalidAmountError("Amount must be positive", field=field, value=amount)
    return value


def normalise_private_key(private_key: str | None) -> str:
    """Return the key with a ``0x`` prefix or raise if it is absent."""
    if not private_key or not private_key.strip():
        raise ConfigurationError(
            "WALLET_PRIVATE_KEY is not set; add it to your .local.env file",
            setting="WALLET_PRIVATE_KEY",
        )
    key = private_key.strip()
    return key if key.startswith("0x") else f"0x{key}"


def serialise(value: Any) -> Any:
    """Turn web3 return values into JSON-friendly structures."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        return {key: serialise(item) for key, item in value.items()}
    if isinstance(value, bytes | bytearray | HexBytes):
        return HexBytes(value).to_0x_hex()
    if isinstance(value, Sequence) and not isinstance(value, str):
        return [serialise(item) for item in value]
    if isinstance(value, Decimal):
        return str(value)
    return value


def format_json(value: Any) -> str:
    """Render a value as indented JSON, writing big integers as strings."""
    return json.dumps(serialise(value), indent=2, default=str)


def redact_url(url: str) -> str:
    """Keep scheme, host and port of an endpoint; hide credentials, path and query.

    Provider RPC URLs usually carry the API key in the path or query string.
    """
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return "***"
    if not parts.scheme or not parts.hostname:
        return "***"

    host = f"[{parts.hostname}]" if ":" in parts.hostname else parts.hostname
    redacted = f"{parts.scheme}://{host}" + (f":{port}" if port else "")
    if parts.username or parts.password or parts.path.strip("/") or parts.query or parts.fragment:
        redacted += "/***"
    return redacted
