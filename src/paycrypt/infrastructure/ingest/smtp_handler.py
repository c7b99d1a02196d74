"""SMTP ingestion gateway for PayCrypt.

Implements the aiosmtpd handler that receives payment mail, plus an SMTP
protocol subclass that applies per-origin admission control before the
greeting is sent. The full pipeline runs inside DATA, before the reply, so a
client only sees 250 once the message has been processed.

Architecture: Hexagonal - Infrastructure adapter implementing email ingestion
"""

import asyncio
import logging
from typing import Optional

from aiosmtpd.smtp import SMTP, Envelope, Session

from ...domain.messages import ClientInfo, is_valid_address
from ...observability.metrics import active_smtp_connections
from .admission import AdmissionController

logger = logging.getLogger(__name__)


class PayCryptSMTPHandler:
    """aiosmtpd handler for PayCrypt ingestion.

    Envelope checks:
    - MAIL FROM and every RCPT TO must look like local@domain.tld; anything
      else is answered with a 451 transient failure and never reaches the
      parser

    Message processing (DATA):
    1. Hand raw bytes + envelope + client info to the pipeline
    2. Reply 250 when the pipeline returns, whatever the business outcome
    3. Reply 451 4.3.0 when the pipeline raises
    """

    def __init__(self, pipeline):
        """Initialize SMTP handler.

        Args:
            pipeline: Object with an async process(raw, client, envelope_sender,
                envelope_recipients, channel) method (MessagePipeline)
        """
        self.pipeline = pipeline

    async def handle_MAIL(
        self,
        server: SMTP,
        session: Session,
        envelope: Envelope,
        address: str,
        mail_options: list,
    ) -> str:
        if not is_valid_address(address):
            logger.warning(f"Rejected malformed MAIL FROM address: {address!r}")
            return "451 4.1.7 Invalid sender address"

        envelope.mail_from = address
        envelope.mail_options.extend(mail_options)
        return "250 OK"

    async def handle_RCPT(
        self,
        server: SMTP,
        session: Session,
        envelope: Envelope,
        address: str,
        rcpt_options: list,
    ) -> str:
        if not is_valid_address(address):
            logger.warning(f"Rejected malformed RCPT TO address: {address!r}")
            return "451 4.1.3 Invalid recipient address"

        envelope.rcpt_tos.append(address)
        envelope.rcpt_options.extend(rcpt_options)
        return "250 OK"

    async def handle_DATA(
        self,
        server: SMTP,
        session: Session,
        envelope: Envelope,
    ) -> str:
        """Handle email DATA command (main SMTP handler entry point).

        Args:
            server: SMTP server instance
            session: SMTP session
            envelope: Email envelope (content, sender, recipients)

        Returns:
            str: SMTP response code and message
                '250 OK: Message accepted' - Pipeline completed
                '451 4.3.0 ...' - Pipeline raised
        """
        peer = session.peer
        client = ClientInfo(
            remote_address=peer[0] if isinstance(peer, tuple) else str(peer or "unknown"),
            hostname=session.host_name,
        )
        raw = envelope.original_content or envelope.content or b""
        if isinstance(raw, str):
            raw = raw.encode("utf-8", errors="surrogateescape")

        logger.info(
            f"Received email: from={envelope.mail_from}, "
            f"to={','.join(envelope.rcpt_tos)}, size={len(raw)} bytes",
            extra={"origin": client.remote_address},
        )

        try:
            await self.pipeline.process(
                raw=raw,
                client=client,
                envelope_sender=envelope.mail_from,
                envelope_recipients=list(envelope.rcpt_tos),
                channel="smtp",
            )
        except Exception as e:
            logger.error(
                f"Unexpected error processing email: {e}",
                exc_info=True,
                extra={"origin": client.remote_address},
            )
            return "451 4.3.0 Temporary server error, please retry"

        return "250 OK: Message accepted"


class AdmissionControlledSMTP(SMTP):
    """SMTP protocol instance that consults admission control on connect.

    A rejected client gets a single 421 line and the transport is closed
    before any greeting; it never holds a connection slot. An admitted client
    releases its slot when the connection is lost, however the session ended.
    """

    def __init__(self, handler, admission: AdmissionController, **kwargs):
        super().__init__(handler, **kwargs)
        self.admission = admission
        self.origin: Optional[str] = None
        self.admitted = False

    def connection_made(self, transport):
        peer = transport.get_extra_info("peername")
        self.origin = peer[0] if isinstance(peer, tuple) else str(peer or "unknown")

        decision = self.admission.admit(self.origin)
        if not decision.admitted:
            transport.write(f"{decision.reply}\r\n".encode("ascii"))
            transport.close()
            return

        self.admitted = True
        active_smtp_connections.inc()
        super().connection_made(transport)

    def connection_lost(self, error):
        if not self.admitted:
            return

        self.admitted = False
        active_smtp_connections.dec()
        try:
            self.admission.release(self.origin)
        finally:
            super().connection_lost(error)


class SMTPGateway:
    """Owns the SMTP listening socket on the running event loop.

    Example:
        gateway = SMTPGateway(handler, admission, host="127.0.0.1", port=2525)
        await gateway.start()
        ...
        await gateway.stop()
    """

    def __init__(
        self,
        handler: PayCryptSMTPHandler,
        admission: AdmissionController,
        host: str = "127.0.0.1",
        port: int = 2525,
        hostname: Optional[str] = None,
        banner: str = "PayCrypt Email Server",
        data_size_limit: int = 10 * 1024 * 1024,
    ):
        self.handler = handler
        self.admission = admission
        self.host = host
        self.port = port
        self.hostname = hostname
        self.banner = banner
        self.data_size_limit = data_size_limit
        self.server: Optional[asyncio.AbstractServer] = None

    def _factory(self) -> AdmissionControlledSMTP:
        return AdmissionControlledSMTP(
            self.handler,
            admission=self.admission,
            data_size_limit=self.data_size_limit,
            hostname=self.hostname,
            ident=self.banner,
            enable_SMTPUTF8=True,
        )

    @property
    def bound_port(self) -> Optional[int]:
        """Actual listening port (useful when started with port 0)."""
        if not self.server or not self.server.sockets:
            return None
        return self.server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        self.server = await loop.create_server(self._factory, host=self.host, port=self.port)
        logger.info(f"SMTP server started on {self.host}:{self.bound_port}")

    async def stop(self) -> None:
        if self.server is None:
            return
        self.server.close()
        try:
            # wait_closed() also waits for open sessions on recent Pythons
            await asyncio.wait_for(self.server.wait_closed(), timeout=5)
        except asyncio.TimeoutError:
            logger.warning("SMTP sessions still open at shutdown, not waiting for them")
        self.server = None
        logger.info("SMTP server stopped")
