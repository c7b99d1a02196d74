"""Integration tests for the message pipeline.

Wires the real parser, filesystem archive, orchestrator (in-memory ledger)
and dispatcher (recording mail sender) and drives raw messages through
MessagePipeline.process / replay.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from paycrypt.domain.exceptions import ArchiveEntryNotFound, StorageError
from paycrypt.domain.messages import ClientInfo
from paycrypt.domain.results import TransactionOutcome, TransferErrorKind
from paycrypt.pipeline.service import NO_INTENT

CLIENT = ClientInfo(remote_address="203.0.113.7", hostname="mx.example.com")
ALICE = "alice@example.com"
BOB = "bob@example.com"


class TestTransferPipeline:

    @pytest.mark.asyncio
    async def test_completed_transfer_deletes_archive_entry(self, pipeline, ledger, archive, mail_sender, raw_email):
        await ledger.register(ALICE, Decimal("10"))

        report = await pipeline.process(
            raw_email(body="Send 0.1 PYUSD to bob@example.com"),
            client=CLIENT,
        )

        assert report.outcome == TransactionOutcome.TRANSFER_COMPLETED.value
        assert report.intent_kind == "transfer"
        assert report.archived is True
        assert report.archive_deleted is True
        assert await archive.list() == []
        assert [m.to for m in mail_sender.sent] == [ALICE, BOB]

    @pytest.mark.asyncio
    async def test_failed_transfer_keeps_archive_entry(self, pipeline, ledger, archive, raw_email):
        await ledger.register(ALICE, Decimal("10"))
        raw = raw_email(body="send 1 DOT: alpha-one", to=["pay@paycrypt.example", BOB])

        first = await pipeline.process(raw, client=CLIENT)
        second = await pipeline.process(raw, client=CLIENT)

        assert first.outcome == TransactionOutcome.TRANSFER_COMPLETED.value
        assert second.outcome == TransactionOutcome.TRANSFER_FAILED.value
        assert second.transaction.error_kind == TransferErrorKind.NONCE_REUSE
        assert second.archive_deleted is False

        remaining = await archive.list()
        assert [e.email_id for e in remaining] == [second.email_id]
        assert len(ledger.transfers) == 1

    @pytest.mark.asyncio
    async def test_insufficient_funds_keeps_archive_entry(self, pipeline, ledger, archive, mail_sender, raw_email):
        await ledger.register(ALICE, Decimal("0.05"))

        report = await pipeline.process(raw_email(body="send 0.1 DOT to bob@example.com"), client=CLIENT)

        assert report.outcome == TransactionOutcome.INSUFFICIENT_FUNDS.value
        assert report.archive_deleted is False
        assert len(await archive.list()) == 1
        assert ledger.transfers == []
        assert mail_sender.sent[0].subject == "Re: Payment - Transaction Status"

    @pytest.mark.asyncio
    async def test_archive_metadata_recorded(self, pipeline, archive, raw_email):
        report = await pipeline.process(
            raw_email(body="hello there"),
            client=CLIENT,
            envelope_sender=ALICE,
            envelope_recipients=["pay@paycrypt.example"],
        )

        entry = await archive.metadata(report.email_id)
        assert entry.sender == ALICE
        assert entry.metadata["envelopeTo"] == ["pay@paycrypt.example"]
        assert entry.metadata["clientIP"] == "203.0.113.7"


class TestOtherIntents:

    @pytest.mark.asyncio
    async def test_no_intent_is_kept_and_not_answered(self, pipeline, archive, mail_sender, raw_email):
        report = await pipeline.process(raw_email(body="Lunch on Friday?"), client=CLIENT)

        assert report.outcome == NO_INTENT
        assert report.intent_kind == "none"
        assert report.archive_deleted is False
        assert mail_sender.sent == []
        assert len(await archive.list()) == 1

    @pytest.mark.asyncio
    async def test_balance_inquiry_for_new_sender(self, pipeline, archive, mail_sender, raw_email):
        report = await pipeline.process(raw_email(subject="Balance", body="What is my balance?"), client=CLIENT)

        assert report.outcome == TransactionOutcome.WALLET_CREATED_EMPTY.value
        assert report.balance_inquiry.balance == Decimal("0")
        assert report.archive_deleted is True
        assert mail_sender.sent[0].subject == "Re: Balance"

    @pytest.mark.asyncio
    async def test_transfer_and_inquiry_in_one_message(self, pipeline, ledger, archive, mail_sender, raw_email):
        await ledger.register(ALICE, Decimal("10"))

        report = await pipeline.process(
            raw_email(body="send 1 DOT to bob@example.com\nwhat is my balance"),
            client=CLIENT,
        )

        assert report.transaction.outcome == TransactionOutcome.TRANSFER_COMPLETED
        assert report.balance_inquiry.outcome == TransactionOutcome.BALANCE_RETRIEVED
        assert report.balance_inquiry.balance == Decimal("9")
        assert report.terminal_success
        assert report.archive_deleted
        assert len(report.notifications) == 2


class TestReplay:

    @pytest.mark.asyncio
    async def test_replay_after_funding(self, pipeline, ledger, archive, raw_email):
        alice = await ledger.register(ALICE, Decimal("0"))
        first = await pipeline.process(raw_email(body="send 2 DOT to bob@example.com"), client=CLIENT)
        assert first.outcome == TransactionOutcome.INSUFFICIENT_FUNDS.value

        ledger.balances[alice] = Decimal("5")
        replayed = await pipeline.replay(first.email_id)

        assert replayed.email_id == first.email_id
        assert replayed.outcome == TransactionOutcome.TRANSFER_COMPLETED.value
        assert replayed.archive_deleted is True
        with pytest.raises(ArchiveEntryNotFound):
            await archive.metadata(first.email_id)

    @pytest.mark.asyncio
    async def test_replay_unknown_entry(self, pipeline):
        with pytest.raises(ArchiveEntryNotFound):
            await pipeline.replay("doesnotexist")


class TestFailureHandling:

    @pytest.mark.asyncio
    async def test_archive_failure_does_not_stop_processing(self, pipeline, ledger, archive, raw_email):
        await ledger.register(ALICE, Decimal("10"))
        archive.save = AsyncMock(side_effect=StorageError("disk full"))
        archive.delete = AsyncMock()

        report = await pipeline.process(raw_email(body="send 1 DOT to bob@example.com"), client=CLIENT)

        assert report.outcome == TransactionOutcome.TRANSFER_COMPLETED.value
        assert report.archived is False
        archive.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates(self, pipeline, raw_email):
        pipeline.parser.parse = MagicMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await pipeline.process(raw_email(), client=CLIENT)
