"""Transaction orchestration against the wallet ledger.

Drives a validated intent through wallet resolution, balance check and
transfer, producing exactly one terminal outcome. Ledger calls are awaited in
sequence and never retried; failures become outcome values, not exceptions.

Transfer workflow:
    ResolveSender -> CheckBalance -> ResolveReceiver -> ExecuteTransfer

Balance inquiry workflow:
    exists -> balance | create (empty wallet)
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional

from ..domain.exceptions import LedgerError, TransferRejected
from ..domain.hashing import deterministic_nonce, owner_commitment
from ..domain.intents import BalanceInquiryIntent, TransactionIntent
from ..domain.ports.ledger_port import LedgerPort, TransferCredential, WalletCredentials
from ..domain.results import (
    BalanceInquiryResult,
    TransactionOutcome,
    TransactionResult,
    TransferErrorKind,
    WalletResolution,
)

logger = logging.getLogger(__name__)


class TransactionOrchestrator:
    """Run transfer and balance-inquiry workflows.

    Example:
        orchestrator = TransactionOrchestrator(
            ledger=ledger,
            verification_key=settings.LEDGER_VERIFICATION_KEY,
            transfer_credential=TransferCredential(proof="0x...", public_signals="0x..."),
            operator_addresses=settings.operator_addresses,
        )
        result = await orchestrator.execute(intent)
    """

    def __init__(
        self,
        ledger: LedgerPort,
        verification_key: str,
        transfer_credential: TransferCredential,
        operator_addresses: Iterable[str] = (),
        verifier: Optional[str] = None,
        native_currency: str = "DOT",
    ):
        self.ledger = ledger
        self.verification_key = verification_key
        self.transfer_credential = transfer_credential
        self.operator_addresses = frozenset(addr.lower() for addr in operator_addresses)
        self.verifier = verifier
        self.native_currency = native_currency

    @classmethod
    def from_settings(cls, ledger: LedgerPort, settings) -> "TransactionOrchestrator":
        return cls(
            ledger=ledger,
            verification_key=settings.LEDGER_VERIFICATION_KEY,
            transfer_credential=TransferCredential(
                proof=settings.LEDGER_TRANSFER_PROOF,
                public_signals=settings.LEDGER_PUBLIC_SIGNALS,
            ),
            operator_addresses=settings.operator_addresses,
            verifier=settings.VERIFIER_ADDRESS,
            native_currency=settings.LEDGER_NATIVE_CURRENCY,
        )

    def credentials_for(self, identity: str) -> WalletCredentials:
        return WalletCredentials(
            verification_key=self.verification_key,
            owner_commitment=owner_commitment(identity),
            verifier=self.verifier,
        )

    async def resolve_wallet(self, identity: str) -> WalletResolution:
        """Find or create the wallet for an identity.

        A failed creation yields a degraded, non-authoritative resolution with
        no address; nothing is fabricated in its place.

        Raises:
            LedgerError: If the existence check itself fails
        """
        identity = identity.strip().lower()
        key = self.ledger.identity_hash(identity)

        lookup = await self.ledger.exists(key)
        if lookup.exists:
            if lookup.count > 1:
                logger.warning(
                    f"{lookup.count} wallets registered for {identity}, using the first",
                    extra={"sender": identity},
                )
            return WalletResolution(
                identity=identity,
                identity_hash=key,
                address=lookup.address,
                authoritative=True,
            )

        try:
            creation = await self.ledger.create(key, self.credentials_for(identity))
        except LedgerError as e:
            logger.warning(
                f"Wallet creation failed for {identity}: {e}",
                extra={"sender": identity, "operation": "wallet_create"},
            )
            return WalletResolution.degraded(identity, key)

        logger.info(
            f"Created wallet {creation.address} for {identity}",
            extra={"sender": identity, "ledger_ref": creation.ref},
        )
        return WalletResolution(
            identity=identity,
            identity_hash=key,
            address=creation.address,
            authoritative=True,
            created=True,
            creation_ref=creation.ref,
        )

    def resolve_receiver_identity(self, intent: TransactionIntent) -> Optional[str]:
        """Explicit recipient wins; otherwise the first non-operator To address."""
        if intent.recipient:
            return intent.recipient.lower()
        for candidate in intent.candidate_recipients:
            if candidate.lower() not in self.operator_addresses:
                return candidate.lower()
        return None

    async def execute(self, intent: TransactionIntent) -> TransactionResult:
        """Run the transfer workflow for one intent.

        Returns:
            TransactionResult: Exactly one terminal outcome; never raises for
                ledger failures
        """
        base = {
            "sender": intent.sender,
            "amount": intent.amount,
            "currency": intent.currency,
            "call_sign": intent.call_sign,
        }

        # 1. ResolveSender
        try:
            sender_wallet = await self.resolve_wallet(intent.sender)
        except LedgerError as e:
            return self._ledger_error(base, "sender lookup", e)

        if not sender_wallet.authoritative:
            return TransactionResult(
                outcome=TransactionOutcome.SENDER_WALLET_CREATION_FAILED,
                message=f"We could not create a wallet for {intent.sender}. Please try again later.",
                sender_wallet=sender_wallet,
                **base,
            )

        if sender_wallet.created:
            return TransactionResult(
                outcome=TransactionOutcome.SENDER_WALLET_CREATED,
                message=(
                    f"A new wallet {sender_wallet.address} was created for {intent.sender}. "
                    f"Fund it and send your request again."
                ),
                sender_wallet=sender_wallet,
                ledger_ref=sender_wallet.creation_ref,
                sender_balance=Decimal("0"),
                **base,
            )

        # 2. CheckBalance
        try:
            sender_balance = await self.ledger.balance(sender_wallet.address)
        except LedgerError as e:
            return self._ledger_error(base, "balance check", e, sender_wallet=sender_wallet)

        if sender_balance < intent.amount:
            logger.info(
                f"Insufficient funds: balance {sender_balance} < {intent.amount}",
                extra={"sender": intent.sender, "outcome": TransactionOutcome.INSUFFICIENT_FUNDS.value},
            )
            return TransactionResult(
                outcome=TransactionOutcome.INSUFFICIENT_FUNDS,
                message=(
                    f"Insufficient funds: your balance is {sender_balance}, "
                    f"the transfer needs {intent.amount} {intent.currency}."
                ),
                sender_wallet=sender_wallet,
                sender_balance=sender_balance,
                **base,
            )

        # 3. ResolveReceiver
        receiver = self.resolve_receiver_identity(intent)
        if receiver is None:
            return TransactionResult(
                outcome=TransactionOutcome.RECEIVER_UNRESOLVED,
                message="No recipient could be determined. Put the recipient in the To field or the message text.",
                sender_wallet=sender_wallet,
                sender_balance=sender_balance,
                **base,
            )

        try:
            receiver_wallet = await self.resolve_wallet(receiver)
        except LedgerError as e:
            return self._ledger_error(
                base, "receiver lookup", e, recipient=receiver, sender_wallet=sender_wallet
            )

        if not receiver_wallet.authoritative:
            return TransactionResult(
                outcome=TransactionOutcome.RECEIVER_WALLET_CREATION_FAILED,
                message=f"We could not create a wallet for the recipient {receiver}.",
                recipient=receiver,
                sender_wallet=sender_wallet,
                receiver_wallet=receiver_wallet,
                sender_balance=sender_balance,
                **base,
            )

        # 4. ExecuteTransfer
        nonce = deterministic_nonce(intent.sender, intent.nonce_seed)
        try:
            receipt = await self.ledger.transfer(
                from_address=sender_wallet.address,
                to_address=receiver_wallet.address,
                amount=intent.amount,
                nonce=nonce,
                credential=self.transfer_credential,
            )
        except TransferRejected as e:
            return self._transfer_failed(base, receiver, sender_wallet, receiver_wallet, nonce, e.kind, e.reason)
        except LedgerError as e:
            return self._transfer_failed(
                base, receiver, sender_wallet, receiver_wallet, nonce,
                TransferErrorKind.GENERIC_REVERT, str(e),
            )

        logger.info(
            f"Transfer completed: {intent.amount} {intent.currency} {intent.sender} -> {receiver}",
            extra={
                "sender": intent.sender,
                "recipient": receiver,
                "ledger_ref": receipt.ref,
                "outcome": TransactionOutcome.TRANSFER_COMPLETED.value,
            },
        )

        return TransactionResult(
            outcome=TransactionOutcome.TRANSFER_COMPLETED,
            message=f"Transfer of {intent.amount} {intent.currency} to {receiver} completed.",
            recipient=receiver,
            sender_wallet=sender_wallet,
            receiver_wallet=receiver_wallet,
            ledger_ref=receipt.ref,
            nonce=nonce,
            sender_balance=await self._balance_or_none(sender_wallet.address),
            receiver_balance=await self._balance_or_none(receiver_wallet.address),
            **base,
        )

    async def inquire_balance(self, intent: BalanceInquiryIntent) -> BalanceInquiryResult:
        """Run the balance inquiry workflow.

        An unknown sender gets a new wallet and a zero balance. Any failure is
        reported as balance_inquiry_failed and never re-raised.
        """
        sender = intent.sender.strip().lower()
        try:
            key = self.ledger.identity_hash(sender)
            lookup = await self.ledger.exists(key)

            if lookup.exists:
                balance = await self.ledger.balance(lookup.address)
                wallet = WalletResolution(
                    identity=sender,
                    identity_hash=key,
                    address=lookup.address,
                    authoritative=True,
                )
                return BalanceInquiryResult(
                    outcome=TransactionOutcome.BALANCE_RETRIEVED,
                    sender=sender,
                    currency=self.native_currency,
                    message=f"Your balance is {balance} {self.native_currency}.",
                    wallet=wallet,
                    balance=balance,
                )

            creation = await self.ledger.create(key, self.credentials_for(sender))
            wallet = WalletResolution(
                identity=sender,
                identity_hash=key,
                address=creation.address,
                authoritative=True,
                created=True,
                creation_ref=creation.ref,
            )
            return BalanceInquiryResult(
                outcome=TransactionOutcome.WALLET_CREATED_EMPTY,
                sender=sender,
                currency=self.native_currency,
                message=f"A new wallet {creation.address} was created for you. Its balance is 0.",
                wallet=wallet,
                balance=Decimal("0"),
                ledger_ref=creation.ref,
            )
        except Exception as e:
            logger.error(
                f"Balance inquiry failed for {sender}: {e}",
                exc_info=True,
                extra={"sender": sender, "outcome": TransactionOutcome.BALANCE_INQUIRY_FAILED.value},
            )
            return BalanceInquiryResult(
                outcome=TransactionOutcome.BALANCE_INQUIRY_FAILED,
                sender=sender,
                currency=self.native_currency,
                message="We could not retrieve your balance. Please try again later.",
                error=str(e),
            )

    async def _balance_or_none(self, address: str) -> Optional[Decimal]:
        """Post-transfer balance, best effort."""
        try:
            return await self.ledger.balance(address)
        except LedgerError as e:
            logger.warning(f"Could not read post-transfer balance of {address}: {e}")
            return None

    def _ledger_error(self, base: dict, step: str, error: LedgerError, **fields) -> TransactionResult:
        logger.error(
            f"Ledger error during {step}: {error}",
            extra={"sender": base["sender"], "outcome": TransactionOutcome.LEDGER_ERROR.value},
        )
        return TransactionResult(
            outcome=TransactionOutcome.LEDGER_ERROR,
            message="The ledger could not be reached. Your request was not executed.",
            error_detail=f"{step}: {error}",
            **base,
            **fields,
        )

    def _transfer_failed(
        self,
        base: dict,
        receiver: str,
        sender_wallet: WalletResolution,
        receiver_wallet: WalletResolution,
        nonce: int,
        kind: TransferErrorKind,
        detail: str,
    ) -> TransactionResult:
        logger.warning(
            f"Transfer rejected ({kind.value}): {detail}",
            extra={
                "sender": base["sender"],
                "recipient": receiver,
                "error_kind": kind.value,
                "outcome": TransactionOutcome.TRANSFER_FAILED.value,
            },
        )
        messages = {
            TransferErrorKind.NONCE_REUSE: "This request was already executed and was not repeated.",
            TransferErrorKind.INSUFFICIENT_FUNDS: "The ledger rejected the transfer for insufficient funds.",
            TransferErrorKind.GENERIC_REVERT: "The ledger rejected the transfer.",
        }
        return TransactionResult(
            outcome=TransactionOutcome.TRANSFER_FAILED,
            message=messages[kind],
            recipient=receiver,
            sender_wallet=sender_wallet,
            receiver_wallet=receiver_wallet,
            nonce=nonce,
            error_kind=kind,
            error_detail=detail,
            **base,
        )
