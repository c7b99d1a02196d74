"""Unit tests for the in-memory ledger."""

from decimal import Decimal

import pytest

from paycrypt.domain.exceptions import LedgerCallFailed, TransferRejected
from paycrypt.domain.ports.ledger_port import TransferCredential, WalletCredentials
from paycrypt.domain.results import TransferErrorKind

CREDENTIAL = TransferCredential(proof="0x", public_signals="0x")


class TestWallets:

    @pytest.mark.asyncio
    async def test_create_and_lookup(self, ledger):
        key = ledger.identity_hash("Alice@Example.com")
        assert not (await ledger.exists(key)).exists

        creation = await ledger.create(key, WalletCredentials("vk", "0xowner"))
        lookup = await ledger.exists(ledger.identity_hash("alice@example.com"))

        assert lookup.exists
        assert lookup.address == creation.address
        assert lookup.count == 1
        assert creation.ref.startswith("0x")
        assert await ledger.balance(creation.address) == Decimal("0")

    @pytest.mark.asyncio
    async def test_multiple_wallets_first_is_used(self, ledger):
        key = ledger.identity_hash("alice@example.com")
        first = await ledger.create(key, WalletCredentials("vk", "0xowner"))
        await ledger.create(key, WalletCredentials("vk", "0xowner"))

        lookup = await ledger.exists(key)
        assert lookup.count == 2
        assert lookup.address == first.address

    @pytest.mark.asyncio
    async def test_unknown_address_balance(self, ledger):
        with pytest.raises(LedgerCallFailed):
            await ledger.balance("0xnope")


class TestTransfers:

    @pytest.mark.asyncio
    async def test_transfer_moves_funds(self, ledger):
        alice = await ledger.register("alice@example.com", Decimal("5"))
        bob = await ledger.register("bob@example.com")

        receipt = await ledger.transfer(alice, bob, Decimal("2"), 1, CREDENTIAL)

        assert receipt.ref
        assert await ledger.balance(alice) == Decimal("3")
        assert await ledger.balance(bob) == Decimal("2")

    @pytest.mark.asyncio
    async def test_nonce_reuse_rejected(self, ledger):
        alice = await ledger.register("alice@example.com", Decimal("5"))
        bob = await ledger.register("bob@example.com")
        await ledger.transfer(alice, bob, Decimal("1"), 42, CREDENTIAL)

        with pytest.raises(TransferRejected) as exc_info:
            await ledger.transfer(alice, bob, Decimal("1"), 42, CREDENTIAL)

        assert exc_info.value.kind == TransferErrorKind.NONCE_REUSE
        assert await ledger.balance(alice) == Decimal("4")

    @pytest.mark.asyncio
    async def test_overdraft_rejected(self, ledger):
        alice = await ledger.register("alice@example.com", Decimal("1"))
        bob = await ledger.register("bob@example.com")

        with pytest.raises(TransferRejected) as exc_info:
            await ledger.transfer(alice, bob, Decimal("2"), 1, CREDENTIAL)

        assert exc_info.value.kind == TransferErrorKind.INSUFFICIENT_FUNDS
        assert ledger.transfers == []

    @pytest.mark.asyncio
    async def test_unknown_wallet_rejected(self, ledger):
        alice = await ledger.register("alice@example.com", Decimal("1"))

        with pytest.raises(TransferRejected) as exc_info:
            await ledger.transfer(alice, "0xnope", Decimal("1"), 1, CREDENTIAL)

        assert exc_info.value.kind == TransferErrorKind.GENERIC_REVERT


@pytest.mark.asyncio
async def test_opening_balance():
    from paycrypt.infrastructure.ledger.memory_client import InMemoryLedgerClient

    ledger = InMemoryLedgerClient(opening_balance=Decimal("100"))
    creation = await ledger.create(ledger.identity_hash("x@example.com"), WalletCredentials("vk", "0xo"))
    assert await ledger.balance(creation.address) == Decimal("100")
