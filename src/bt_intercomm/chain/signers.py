"""Registrar signer credentials and per-signer submission serialization."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from eth_account import Account


@dataclass(frozen=True)
class Signer:
    """A registrar account and the private key that signs for it."""

    address: str
    private_key: str = field(repr=False)

    def verify(self) -> bool:
        """True if the key derives the configured address."""
        derived = Account.from_key(self.private_key).address
        return derived.lower() == self.address.lower()


class SignerLocks:
    """One lock per signer address.

    Holding the lock across nonce lookup, signing and broadcast keeps each
    account's nonces in order while attempts for different uuids run
    concurrently. Inclusion is awaited outside the lock.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def for_address(self, address: str) -> asyncio.Lock:
        key = address.lower()
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def __len__(self) -> int:
        return len(self._locks)
