"""Ledger Port - Domain interface for the external wallet ledger.

This port defines the five operations the pipeline consumes from the
value-transfer ledger. Settlement, consensus and proof verification happen on
the ledger side; adapters only translate calls and error shapes.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..hashing import identity_hash


@dataclass(frozen=True)
class WalletLookup:
    """Result of a wallet existence check.

    Attributes:
        exists: True if at least one wallet is registered for the identity hash
        address: Address of the first registered wallet (None when absent)
        count: Number of wallets registered for the identity hash
    """
    exists: bool
    address: Optional[str] = None
    count: int = 0


@dataclass(frozen=True)
class WalletCreation:
    """Result of a successful wallet creation.

    Attributes:
        address: Address of the new wallet
        ref: Ledger transaction reference of the creation
    """
    address: str
    ref: Optional[str] = None


@dataclass(frozen=True)
class TransferReceipt:
    """Result of an executed transfer."""
    ref: str


@dataclass(frozen=True)
class WalletCredentials:
    """Credentials registered with a new wallet.

    Attributes:
        verification_key: Verification key for the wallet's proof scheme
        owner_commitment: Commitment binding the wallet to its owner identity
        verifier: Address of the proof verifier contract, if configured
    """
    verification_key: str
    owner_commitment: str
    verifier: Optional[str] = None


@dataclass(frozen=True)
class TransferCredential:
    """Opaque authorization presented with a transfer.

    Supplied by configuration; never computed by the pipeline.
    """
    proof: str
    public_signals: str


class LedgerPort(ABC):
    """Port interface for the wallet ledger.

    Key Design Principles:
    - Absence of a wallet is a normal result, never an exception
    - Transport failures raise LedgerUnavailable
    - Ledger-side errors raise LedgerCallFailed (or a more specific subclass)
    - Implementations hold no application state

    Example Usage:
        ledger = JsonRpcLedgerClient(rpc_url=..., ...)

        key = ledger.identity_hash("alice@example.com")
        lookup = await ledger.exists(key)
        if lookup.exists:
            balance = await ledger.balance(lookup.address)
    """

    def identity_hash(self, identity: str) -> str:
        """Derive the ledger account key for an identity.

        Deterministic and case-insensitive.

        Args:
            identity: E-mail identity

        Returns:
            str: 0x-prefixed hex digest
        """
        return identity_hash(identity)

    @abstractmethod
    async def exists(self, identity_hash: str) -> WalletLookup:
        """Check whether a wallet is registered for an identity hash.

        Args:
            identity_hash: Key returned by identity_hash()

        Returns:
            WalletLookup: exists=False (not an error) when no wallet is registered

        Raises:
            LedgerUnavailable: If the ledger cannot be reached
            LedgerCallFailed: If the ledger answers with an error
        """
        pass

    @abstractmethod
    async def create(
        self,
        identity_hash: str,
        credentials: WalletCredentials,
    ) -> WalletCreation:
        """Create a wallet for an identity hash.

        Args:
            identity_hash: Key returned by identity_hash()
            credentials: Verification key and owner commitment

        Returns:
            WalletCreation: Address and creation reference

        Raises:
            WalletCreationFailed: If the ledger did not create the wallet
            LedgerUnavailable: If the ledger cannot be reached
        """
        pass

    @abstractmethod
    async def balance(self, address: str) -> Decimal:
        """Read a wallet balance in the ledger's native unit.

        Args:
            address: Wallet address

        Returns:
            Decimal: Current balance

        Raises:
            LedgerUnavailable: If the ledger cannot be reached
            LedgerCallFailed: If the ledger answers with an error
        """
        pass

    @abstractmethod
    async def transfer(
        self,
        from_address: str,
        to_address: str,
        amount: Decimal,
        nonce: int,
        credential: TransferCredential,
    ) -> TransferReceipt:
        """Execute a transfer between two wallets.

        Args:
            from_address: Paying wallet
            to_address: Receiving wallet
            amount: Amount in the ledger's native unit
            nonce: Deterministic nonce; a consumed nonce is rejected
            credential: Opaque authorization from configuration

        Returns:
            TransferReceipt: Ledger transaction reference

        Raises:
            TransferRejected: If the ledger rejects the transfer (classified)
            LedgerUnavailable: If the ledger cannot be reached
            LedgerCallFailed: For other ledger-side errors
        """
        pass

    async def close(self) -> None:
        """Release transport resources. Default: nothing to release."""
        return None
