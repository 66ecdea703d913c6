"""Contract event models decoded from the utility chain log stream."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from bt_intercomm.errors import EventValidationError
from bt_intercomm.validation import (
    is_address_valid,
    is_conversion_rate_valid,
    is_name_valid,
    is_symbol_valid,
    is_uuid_valid,
    to_int,
)

PROPOSED_BRANDED_TOKEN = "ProposedBrandedToken"

EventIdentity = tuple[int, int, str]


def _hex32(value: Any) -> Any:
    """Render a bytes32 log value as 0x-prefixed lowercase hex."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, str) and value and not value.startswith("0x"):
        return "0x" + value
    return value


@dataclass(frozen=True)
class ProposedBrandedToken:
    """Payload of openSTUtility's ProposedBrandedToken event."""

    symbol: str
    name: str
    conversion_rate: int
    requester: str  # 0x address
    token: str  # 0x address of the branded token
    uuid: str  # 0x bytes32

    @classmethod
    def from_event_args(cls, args: Mapping[str, Any]) -> ProposedBrandedToken:
        """Build a validated payload from raw ``_``-prefixed event args.

        Raises EventValidationError naming the first bad field.
        """
        try:
            symbol = args["_symbol"]
            name = args["_name"]
            rate = args["_conversionRate"]
            requester = args["_requester"]
            token = args["_token"]
            uuid = _hex32(args["_uuid"])
        except KeyError as exc:
            raise EventValidationError(f"missing field {exc.args[0]}") from exc

        if not is_symbol_valid(symbol):
            raise EventValidationError(f"invalid _symbol: {symbol!r}")
        if not is_name_valid(name):
            raise EventValidationError(f"invalid _name: {name!r}")
        if not is_conversion_rate_valid(rate):
            raise EventValidationError(f"invalid _conversionRate: {rate!r}")
        if not is_address_valid(requester):
            raise EventValidationError(f"invalid _requester: {requester!r}")
        if not is_address_valid(token):
            raise EventValidationError(f"invalid _token: {token!r}")
        if not is_uuid_valid(uuid):
            raise EventValidationError(f"invalid _uuid: {uuid!r}")

        return cls(
            symbol=symbol,
            name=name,
            conversion_rate=to_int(rate),
            requester=requester,
            token=token,
            uuid=uuid.lower(),
        )


@dataclass(frozen=True)
class ChainEvent:
    """An observed ProposedBrandedToken log entry.

    The same log may be announced more than once (at-least-once delivery,
    reorg re-announcement); ``identity`` is what deduplication keys on.
    """

    block_number: int
    log_index: int
    payload: ProposedBrandedToken
    transaction_hash: str = ""

    @property
    def identity(self) -> EventIdentity:
        return (self.block_number, self.log_index, self.payload.uuid)

    @property
    def uuid(self) -> str:
        return self.payload.uuid
