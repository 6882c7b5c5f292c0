"""Resolve ENS names or hex addresses to canonical addresses."""

from __future__ import annotations

import logging

from ens.utils import normalize_name
from web3 import Web3

from ..exceptions import NameResolutionError
from ..networks import resolve_network
from .connections import ClientCache

logger = logging.getLogger(__name__)


def is_canonical_address(value: str) -> bool:
    """True for 0x-prefixed 20-byte hex; mixed case must carry a valid checksum."""

    return isinstance(value, str) and value.startswith("0x") and Web3.is_address(value)


def validate_name(name: str) -> str:
    """Reject inputs that cannot be ENS names before any lookup is attempted."""

    if not isinstance(name, str) or not name.strip():
        raise NameResolutionError("Name or address must be a non-empty string", name=name)

    candidate = name.strip()
    if candidate.lower().startswith("0x") and "." not in candidate:
        raise NameResolutionError(f"Malformed address: {candidate}", name=name)
    if "." not in candidate:
        raise NameResolutionError(
            f'Input "{candidate}" is not a valid ENS name. ENS names must contain a dot (e.g. "name.eth")',
            name=name,
        )
    if any(char.isspace() for char in candidate):
        raise NameResolutionError(f'Input "{candidate}" contains whitespace', name=name)
    if candidate.startswith(".") or candidate.endswith(".") or ".." in candidate:
        raise NameResolutionError(f'Input "{candidate}" has an empty label', name=name)

    try:
        return normalize_name(candidate)
    except Exception as exc:
        raise NameResolutionError(
            f'Input "{candidate}" is not a valid ENS name',
            name=name,
            details={"error": str(exc)},
        ) from exc


class AddressResolver:
    """Turn address-or-name strings into canonical addresses."""

    def __init__(self, clients: ClientCache) -> None:
        self._clients = clients

    def normalise(self, name: str) -> str:
        return validate_name(name)

    def resolve(self, name_or_address: str, network: str | int = "ethereum") -> str:
        """Return ``name_or_address`` unchanged if it is already an address, else resolve it."""

        if is_canonical_address(name_or_address):
            return name_or_address

        normalised = validate_name(name_or_address)
        descriptor = resolve_network(network)
        ens_network = descriptor.ens_network or descriptor.name
        connection = self._clients.get_read_connection(ens_network)

        logger.debug("Resolving ENS name %s via %s", normalised, ens_network)
        try:
            address = connection.web3.ens.address(normalised)  # type: ignore[union-attr]
        except Exception as exc:
            raise NameResolutionError(
                f"ENS lookup failed for {normalised}",
                name=name_or_address,
                details={"error": str(exc), "network": ens_network},
            ) from exc

        if not address:
            raise NameResolutionError(
                f"ENS name {normalised} does not resolve to an address",
                name=name_or_address,
                details={"network": ens_network},
            )

        logger.info("Resolved ENS name %s to %s", normalised, address)
        return str(address)
