"""Message pipeline - the single entry point for inbound mail.

Both ingestion channels (SMTP and HTTP) and the operator replay command call
MessagePipeline. One invocation handles one message end to end:

    parse MIME -> extract intents -> archive -> run workflows -> notify
    -> delete archive entry on terminal success

Business failures end up in the PipelineReport. Only unexpected errors (for
example unparseable MIME) propagate, and the channel turns them into a
transient failure reply.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..domain.exceptions import StorageError
from ..domain.messages import ClientInfo, IncomingMessage
from ..domain.ports.archive_port import ArchiveStorePort
from ..domain.results import BalanceInquiryResult, TransactionResult
from ..infrastructure.ingest.mime_parser import generate_email_id, parse_incoming_message
from ..notifications.dispatcher import DispatchReport, NotificationDispatcher
from ..observability.correlation import set_correlation_id
from ..observability.metrics import (
    intents_total,
    messages_received_total,
    outcomes_total,
    pipeline_failures_total,
)
from ..orchestration.transaction_orchestrator import TransactionOrchestrator
from ..parsing.intent_parser import IntentParser

logger = logging.getLogger(__name__)

NO_INTENT = "no_intent"


@dataclass
class PipelineReport:
    """What happened to one message."""
    email_id: str
    intent_kind: str
    transaction: Optional[TransactionResult] = None
    balance_inquiry: Optional[BalanceInquiryResult] = None
    notifications: List[DispatchReport] = field(default_factory=list)
    archived: bool = False
    archive_deleted: bool = False

    @property
    def outcome(self) -> str:
        """Primary outcome: the transaction's, else the inquiry's, else no_intent."""
        if self.transaction is not None:
            return self.transaction.outcome.value
        if self.balance_inquiry is not None:
            return self.balance_inquiry.outcome.value
        return NO_INTENT

    @property
    def terminal_success(self) -> bool:
        results = [r for r in (self.transaction, self.balance_inquiry) if r is not None]
        return bool(results) and all(r.is_terminal_success for r in results)


class MessagePipeline:
    """Process inbound messages end to end.

    Example:
        pipeline = MessagePipeline(parser, archive, orchestrator, dispatcher)
        report = await pipeline.process(raw, ClientInfo("203.0.113.7"), channel="http")
    """

    def __init__(
        self,
        parser: IntentParser,
        archive: ArchiveStorePort,
        orchestrator: TransactionOrchestrator,
        dispatcher: NotificationDispatcher,
    ):
        self.parser = parser
        self.archive = archive
        self.orchestrator = orchestrator
        self.dispatcher = dispatcher

    async def process(
        self,
        raw: bytes,
        client: ClientInfo,
        envelope_sender: Optional[str] = None,
        envelope_recipients: Iterable[str] = (),
        channel: str = "smtp",
    ) -> PipelineReport:
        """Run the pipeline for a freshly received message.

        Args:
            raw: Raw RFC 5322 bytes
            client: Delivering client metadata
            envelope_sender: MAIL FROM (SMTP only)
            envelope_recipients: RCPT TO addresses (SMTP only)
            channel: Metric label for the ingestion channel

        Returns:
            PipelineReport: Outcome of the message

        Raises:
            ValueError: If the message cannot be parsed
        """
        email_id = generate_email_id()
        set_correlation_id(email_id)
        messages_received_total.labels(channel=channel).inc()

        try:
            message = parse_incoming_message(
                raw,
                client=client,
                envelope_sender=envelope_sender,
                envelope_recipients=envelope_recipients,
                email_id=email_id,
            )
            archived = await self._archive(message)
            return await self._run(message, archived=archived)
        except Exception:
            pipeline_failures_total.labels(channel=channel).inc()
            raise

    async def replay(self, email_id: str) -> PipelineReport:
        """Re-drive an archived message through the pipeline.

        The existing archive entry is reused and deleted on terminal success.
        A message whose nonce was already consumed reports transfer_failed
        (nonce_reuse) instead of paying twice.

        Raises:
            ArchiveEntryNotFound: If no entry exists for email_id
        """
        set_correlation_id(email_id)
        messages_received_total.labels(channel="replay").inc()

        entry = await self.archive.metadata(email_id)
        raw = await self.archive.get(email_id)
        meta = entry.metadata

        message = parse_incoming_message(
            raw,
            client=ClientInfo(
                remote_address=meta.get("clientIP") or "replay",
                hostname=meta.get("hostname"),
            ),
            envelope_sender=meta.get("envelopeFrom"),
            envelope_recipients=meta.get("envelopeTo") or (),
            email_id=email_id,
        )
        logger.info(f"Replaying archived message {entry.filename}", extra={"email_id": email_id})
        return await self._run(message, archived=True)

    async def _archive(self, message: IncomingMessage) -> bool:
        try:
            await self.archive.save(message.email_id, message.raw, message.archive_metadata())
            return True
        except StorageError as e:
            logger.error(
                f"Failed to archive message, continuing without archive entry: {e}",
                extra={"email_id": message.email_id},
            )
            return False

    async def _run(self, message: IncomingMessage, archived: bool) -> PipelineReport:
        parsed = self.parser.parse(message)
        intents_total.labels(kind=parsed.kind).inc()
        if parsed.transaction is not None and parsed.balance_inquiry is not None:
            intents_total.labels(kind="balance_inquiry").inc()

        report = PipelineReport(
            email_id=message.email_id,
            intent_kind=parsed.kind,
            archived=archived,
        )

        if not parsed.has_intent:
            logger.info(
                "No actionable intent found, message kept in archive",
                extra={"email_id": message.email_id, "sender": message.sender},
            )
            outcomes_total.labels(outcome=NO_INTENT).inc()
            return report

        if parsed.transaction is not None:
            result = await self.orchestrator.execute(parsed.transaction)
            report.transaction = result
            outcomes_total.labels(outcome=result.outcome.value).inc()
            report.notifications.append(
                await self.dispatcher.notify_transaction(message, result)
            )

        if parsed.balance_inquiry is not None:
            inquiry = await self.orchestrator.inquire_balance(parsed.balance_inquiry)
            report.balance_inquiry = inquiry
            outcomes_total.labels(outcome=inquiry.outcome.value).inc()
            report.notifications.append(
                await self.dispatcher.notify_balance_inquiry(message, inquiry)
            )

        logger.info(
            f"Pipeline finished with outcome {report.outcome}",
            extra={"email_id": message.email_id, "outcome": report.outcome},
        )

        if report.terminal_success and archived:
            try:
                report.archive_deleted = await self.archive.delete(message.email_id)
            except StorageError as e:
                logger.error(
                    f"Failed to delete archive entry after terminal success: {e}",
                    extra={"email_id": message.email_id},
                )

        return report
