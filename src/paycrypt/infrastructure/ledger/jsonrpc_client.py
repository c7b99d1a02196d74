"""JSON-RPC Ledger Client - LedgerPort implementation over a ledger gateway.

The gateway holds the ledger connection and the signing account and exposes
four JSON-RPC 2.0 methods:

    wallet_exists   {identity_hash}                          -> {exists, address, count}
    wallet_create   {identity_hash, verification_key,
                     owner_commitment, verifier, factory}    -> {address, ref}
    wallet_balance  {address}                                -> {balance}
    wallet_transfer {from, to, amount, nonce,
                     proof, public_signals}                  -> {ref}

Amounts and balances travel as decimal strings; nonces as decimal strings so
64-bit values survive JSON number handling on the gateway side.

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import itertools
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx

from ...domain.exceptions import (
    LedgerCallFailed,
    LedgerUnavailable,
    TransferRejected,
    WalletCreationFailed,
)
from ...domain.ports.ledger_port import (
    LedgerPort,
    TransferCredential,
    TransferReceipt,
    WalletCreation,
    WalletCredentials,
    WalletLookup,
)
from ...domain.results import TransferErrorKind
from ...observability.metrics import ledger_calls_total, ledger_latency_seconds

logger = logging.getLogger(__name__)

# Structured rejection reasons reported in error.data.reason
REASON_KINDS = {
    "NONCE_ALREADY_USED": TransferErrorKind.NONCE_REUSE,
    "NONCE_REUSED": TransferErrorKind.NONCE_REUSE,
    "INSUFFICIENT_FUNDS": TransferErrorKind.INSUFFICIENT_FUNDS,
    "INSUFFICIENT_BALANCE": TransferErrorKind.INSUFFICIENT_FUNDS,
}

# JSON-RPC protocol-level error codes (not ledger rejections)
PROTOCOL_ERROR_CODES = range(-32768, -32599)


def classify_transfer_error(reason: Optional[str], message: str) -> TransferErrorKind:
    """Map a gateway rejection to a TransferErrorKind.

    The structured reason wins; the message text is only consulted when the
    gateway did not report one.
    """
    if reason and reason.upper() in REASON_KINDS:
        return REASON_KINDS[reason.upper()]

    text = f"{reason or ''} {message}".lower()
    if "nonce" in text:
        return TransferErrorKind.NONCE_REUSE
    if "insufficient" in text:
        return TransferErrorKind.INSUFFICIENT_FUNDS
    return TransferErrorKind.GENERIC_REVERT


class JsonRpcLedgerClient(LedgerPort):
    """Ledger client speaking JSON-RPC 2.0 over httpx.

    Example:
        ledger = JsonRpcLedgerClient(
            rpc_url="http://localhost:8545/rpc",
            factory_address="0xFactory...",
            timeout=30.0,
        )
        lookup = await ledger.exists(ledger.identity_hash("alice@example.com"))
        await ledger.close()
    """

    def __init__(
        self,
        rpc_url: str,
        factory_address: Optional[str] = None,
        signing_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the gateway client.

        Args:
            rpc_url: Gateway JSON-RPC endpoint
            factory_address: Wallet factory the gateway creates wallets with
            signing_key: Credential presented to the gateway as a bearer token
            timeout: Per-request timeout in seconds (the only bound on ledger calls)
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        headers = {"Content-Type": "application/json"}
        if signing_key:
            headers["Authorization"] = f"Bearer {signing_key}"

        self.rpc_url = rpc_url
        self.factory_address = factory_address
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(timeout=timeout, headers=headers, transport=transport)

        logger.info(f"Initialized JSON-RPC ledger client: url={rpc_url}")

    @classmethod
    def from_settings(cls, settings) -> "JsonRpcLedgerClient":
        if not settings.LEDGER_RPC_URL:
            raise ValueError("LEDGER_RPC_URL must be set when LEDGER_BACKEND=jsonrpc")
        return cls(
            rpc_url=settings.LEDGER_RPC_URL,
            factory_address=settings.WALLET_FACTORY_ADDRESS,
            signing_key=settings.LEDGER_SIGNING_KEY,
            timeout=settings.LEDGER_RPC_TIMEOUT_SECONDS,
        )

    async def _call(self, method: str, params: Dict[str, Any]) -> Any:
        """Perform one JSON-RPC call.

        Raises:
            LedgerUnavailable: Transport failure, timeout or 5xx from the gateway
            LedgerCallFailed: JSON-RPC error object or malformed response
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }

        with ledger_latency_seconds.labels(operation=method).time():
            try:
                response = await self._client.post(self.rpc_url, json=payload)
            except httpx.TimeoutException as e:
                ledger_calls_total.labels(operation=method, status="error").inc()
                raise LedgerUnavailable(f"Ledger call {method} timed out: {e}")
            except httpx.HTTPError as e:
                ledger_calls_total.labels(operation=method, status="error").inc()
                raise LedgerUnavailable(f"Ledger gateway unreachable during {method}: {e}")

        if response.status_code >= 500:
            ledger_calls_total.labels(operation=method, status="error").inc()
            raise LedgerUnavailable(
                f"Ledger gateway returned HTTP {response.status_code} for {method}"
            )

        try:
            body = response.json()
        except ValueError:
            ledger_calls_total.labels(operation=method, status="error").inc()
            raise LedgerCallFailed(
                f"Ledger gateway returned non-JSON response for {method} "
                f"(HTTP {response.status_code})"
            )

        error = body.get("error") if isinstance(body, dict) else None
        if error:
            ledger_calls_total.labels(operation=method, status="error").inc()
            if not isinstance(error, dict):
                raise LedgerCallFailed(f"Ledger call {method} failed: {error}")
            data = error.get("data")
            reason = data.get("reason") if isinstance(data, dict) else None
            code = error.get("code")
            raise LedgerCallFailed(
                str(error.get("message") or "Ledger call failed"),
                code=code if isinstance(code, int) else None,
                reason=reason if isinstance(reason, str) else None,
                data=data,
            )

        if response.status_code >= 400 or not isinstance(body, dict) or "result" not in body:
            ledger_calls_total.labels(operation=method, status="error").inc()
            raise LedgerCallFailed(
                f"Malformed ledger response for {method} (HTTP {response.status_code})"
            )

        ledger_calls_total.labels(operation=method, status="success").inc()
        return body["result"]

    async def _call_object(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Perform one JSON-RPC call whose result must be a JSON object."""
        result = await self._call(method, params)
        if not isinstance(result, dict):
            raise LedgerCallFailed(f"Ledger {method} returned {type(result).__name__}, expected an object")
        return result

    async def exists(self, identity_hash: str) -> WalletLookup:
        result = await self._call_object("wallet_exists", {"identity_hash": identity_hash})
        exists = result.get("exists") is True
        address = result.get("address")
        if exists and (not isinstance(address, str) or not address):
            raise LedgerCallFailed(f"Ledger wallet_exists reported a wallet without an address: {address!r}")

        try:
            count = int(result.get("count", 1 if exists else 0))
        except (TypeError, ValueError):
            raise LedgerCallFailed(f"Invalid wallet count from ledger: {result.get('count')!r}")

        return WalletLookup(
            exists=exists,
            address=address if exists else None,
            count=count,
        )

    async def create(
        self,
        identity_hash: str,
        credentials: WalletCredentials,
    ) -> WalletCreation:
        try:
            result = await self._call_object(
                "wallet_create",
                {
                    "identity_hash": identity_hash,
                    "verification_key": credentials.verification_key,
                    "owner_commitment": credentials.owner_commitment,
                    "verifier": credentials.verifier,
                    "factory": self.factory_address,
                },
            )
        except LedgerCallFailed as e:
            raise WalletCreationFailed(f"Wallet creation rejected: {e}")

        address = result.get("address")
        if not isinstance(address, str) or not address:
            raise WalletCreationFailed("Wallet creation returned no address")

        ref = result.get("ref")
        logger.info(
            f"Created wallet {address}",
            extra={"operation": "wallet_create", "ledger_ref": ref},
        )
        return WalletCreation(address=address, ref=str(ref) if ref is not None else None)

    async def balance(self, address: str) -> Decimal:
        result = await self._call("wallet_balance", {"address": address})
        raw = result.get("balance") if isinstance(result, dict) else result
        if isinstance(raw, bool) or not isinstance(raw, (str, int, float)):
            raise LedgerCallFailed(f"Invalid balance value from ledger: {raw!r}")
        try:
            value = Decimal(str(raw))
        except InvalidOperation:
            raise LedgerCallFailed(f"Invalid balance value from ledger: {raw!r}")
        if not value.is_finite() or value < 0:
            raise LedgerCallFailed(f"Invalid balance value from ledger: {raw!r}")
        return value

    async def transfer(
        self,
        from_address: str,
        to_address: str,
        amount: Decimal,
        nonce: int,
        credential: TransferCredential,
    ) -> TransferReceipt:
        try:
            result = await self._call_object(
                "wallet_transfer",
                {
                    "from": from_address,
                    "to": to_address,
                    "amount": str(amount),
                    "nonce": str(nonce),
                    "proof": credential.proof,
                    "public_signals": credential.public_signals,
                },
            )
        except LedgerCallFailed as e:
            if e.code is not None and e.code in PROTOCOL_ERROR_CODES:
                raise
            kind = classify_transfer_error(e.reason, str(e))
            raise TransferRejected(kind, e.reason or str(e))

        ref = result.get("ref")
        if not isinstance(ref, str) or not ref:
            raise LedgerCallFailed("Transfer returned no ledger reference")
        return TransferReceipt(ref=ref)

    async def close(self) -> None:
        await self._client.aclose()
