"""In-memory ledger for development and tests (LEDGER_BACKEND=memory).

Mirrors the gateway's observable behavior: one wallet per identity hash,
balances in the native unit, and rejection of consumed nonces and overdrafts.
State is lost when the process exits.
"""

import hashlib
import logging
import uuid
from decimal import Decimal
from typing import Dict, List, Set, Tuple

from ...domain.exceptions import LedgerCallFailed, TransferRejected
from ...domain.ports.ledger_port import (
    LedgerPort,
    TransferCredential,
    TransferReceipt,
    WalletCreation,
    WalletCredentials,
    WalletLookup,
)
from ...domain.results import TransferErrorKind

logger = logging.getLogger(__name__)


def _ref() -> str:
    return f"0x{uuid.uuid4().hex}{uuid.uuid4().hex}"


class InMemoryLedgerClient(LedgerPort):
    """Process-local LedgerPort implementation.

    Example:
        ledger = InMemoryLedgerClient()
        address = await ledger.register("alice@example.com", Decimal("10"))
        await ledger.balance(address)  # Decimal("10")
    """

    def __init__(self, opening_balance: Decimal = Decimal("0")):
        self.opening_balance = Decimal(opening_balance)
        self.wallets: Dict[str, List[str]] = {}
        self.balances: Dict[str, Decimal] = {}
        self.used_nonces: Set[Tuple[str, int]] = set()
        self.transfers: List[Dict] = []

    @classmethod
    def from_settings(cls, settings) -> "InMemoryLedgerClient":
        return cls(opening_balance=settings.LEDGER_MEMORY_OPENING_BALANCE)

    async def exists(self, identity_hash: str) -> WalletLookup:
        addresses = self.wallets.get(identity_hash, [])
        return WalletLookup(
            exists=bool(addresses),
            address=addresses[0] if addresses else None,
            count=len(addresses),
        )

    async def create(
        self,
        identity_hash: str,
        credentials: WalletCredentials,
    ) -> WalletCreation:
        digest = hashlib.sha256(f"{identity_hash}:{len(self.balances)}".encode()).hexdigest()
        address = f"0x{digest[:40]}"
        self.wallets.setdefault(identity_hash, []).append(address)
        self.balances[address] = self.opening_balance

        logger.info(f"Created in-memory wallet {address}", extra={"operation": "wallet_create"})
        return WalletCreation(address=address, ref=_ref())

    async def balance(self, address: str) -> Decimal:
        if address not in self.balances:
            raise LedgerCallFailed(f"Unknown wallet address: {address}", reason="UNKNOWN_WALLET")
        return self.balances[address]

    async def transfer(
        self,
        from_address: str,
        to_address: str,
        amount: Decimal,
        nonce: int,
        credential: TransferCredential,
    ) -> TransferReceipt:
        if from_address not in self.balances or to_address not in self.balances:
            raise TransferRejected(TransferErrorKind.GENERIC_REVERT, "UNKNOWN_WALLET")
        if (from_address, nonce) in self.used_nonces:
            raise TransferRejected(TransferErrorKind.NONCE_REUSE, "NONCE_ALREADY_USED")
        if self.balances[from_address] < amount:
            raise TransferRejected(TransferErrorKind.INSUFFICIENT_FUNDS, "INSUFFICIENT_FUNDS")

        self.used_nonces.add((from_address, nonce))
        self.balances[from_address] -= amount
        self.balances[to_address] += amount

        ref = _ref()
        self.transfers.append({
            "ref": ref,
            "from": from_address,
            "to": to_address,
            "amount": amount,
            "nonce": nonce,
        })
        return TransferReceipt(ref=ref)

    async def register(self, identity: str, balance: Decimal = Decimal("0")) -> str:
        """Create a funded wallet for an identity and return its address."""
        creation = await self.create(
            self.identity_hash(identity),
            WalletCredentials(verification_key="dev", owner_commitment="dev"),
        )
        self.balances[creation.address] = Decimal(balance)
        return creation.address
