"""Field validators for addresses, identifiers and branded token parameters."""

from __future__ import annotations

import re

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_BYTES32_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_NAME_RE = re.compile(r"[a-z0-9\s]", re.IGNORECASE)
_SYMBOL_RE = re.compile(r"[a-z0-9]", re.IGNORECASE)


def is_address_valid(address: object) -> bool:
    if not isinstance(address, str):
        return False
    return bool(_ADDRESS_RE.match(address))


def is_uuid_valid(uuid: object) -> bool:
    """A branded token uuid is a 0x-prefixed bytes32."""
    if not isinstance(uuid, str):
        return False
    return bool(_BYTES32_RE.match(uuid))


def is_tx_hash_valid(tx_hash: object) -> bool:
    if not isinstance(tx_hash, str):
        return False
    return bool(_BYTES32_RE.match(tx_hash))


def _as_int(value: object) -> int | None:
    """Coerce ints and integral strings; reject bools, floats with fractions, junk."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError:
            return None
    return None


def is_conversion_rate_valid(rate: object) -> bool:
    n = _as_int(rate)
    return n is not None and n >= 1


def is_name_valid(name: object) -> bool:
    if not isinstance(name, str):
        return False
    return bool(_NAME_RE.search(name))


def is_symbol_valid(symbol: object) -> bool:
    if not isinstance(symbol, str):
        return False
    return bool(_SYMBOL_RE.search(symbol))


def to_int(value: object) -> int:
    """Parse a validated integer field. Raises ValueError on anything else."""
    n = _as_int(value)
    if n is None:
        raise ValueError(f"not an integer: {value!r}")
    return n
