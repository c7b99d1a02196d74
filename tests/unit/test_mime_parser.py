"""Unit tests for MIME parsing into IncomingMessage."""

import pytest

from paycrypt.domain.messages import ClientInfo
from paycrypt.infrastructure.ingest.mime_parser import (
    generate_email_id,
    parse_incoming_message,
    parse_mime_message,
)

CLIENT = ClientInfo(remote_address="198.51.100.4", hostname="mx.example.net")


class TestParseIncomingMessage:
    """Test header decoding and address normalization"""

    def test_headers_and_addresses(self, raw_email):
        raw = raw_email(
            sender="Alice <ALICE@Example.com>",
            to=["Bob <BOB@example.com>", "pay@paycrypt.example"],
            cc=["carol@example.com"],
            subject="Send 5 DOT",
            body="Please send 5 DOT to bob@example.com",
            message_id="<abc@example.com>",
        )

        message = parse_incoming_message(raw, client=CLIENT, email_id="id1")

        assert message.email_id == "id1"
        assert message.sender == "alice@example.com"
        assert message.to == ("bob@example.com", "pay@paycrypt.example")
        assert message.cc == ("carol@example.com",)
        assert message.bcc == ()
        assert message.subject == "Send 5 DOT"
        assert "send 5 DOT to bob@example.com" in message.text_body
        assert message.message_id == "<abc@example.com>"
        assert message.client == CLIENT
        assert message.raw == raw
        assert message.size == len(raw)

    def test_envelope_fields(self, raw_email):
        message = parse_incoming_message(
            raw_email(),
            client=CLIENT,
            envelope_sender="Bounce@Example.com",
            envelope_recipients=["PAY@paycrypt.example", "pay@paycrypt.example"],
        )

        assert message.envelope_sender == "bounce@example.com"
        assert message.envelope_recipients == ("pay@paycrypt.example",)

    def test_email_id_generated_when_omitted(self, raw_email):
        message = parse_incoming_message(raw_email(), client=CLIENT)
        assert len(message.email_id) == 32

    def test_sender_falls_back_to_envelope(self):
        raw = (
            b"To: pay@paycrypt.example\r\n"
            b"Subject: no from\r\n"
            b"\r\n"
            b"what is my balance\r\n"
        )
        message = parse_incoming_message(raw, client=CLIENT, envelope_sender="alice@example.com")
        assert message.sender == "alice@example.com"

    def test_no_sender_at_all(self):
        raw = b"To: pay@paycrypt.example\r\nSubject: anonymous\r\n\r\nhi\r\n"
        message = parse_incoming_message(raw, client=CLIENT)
        assert message.sender == ""

    def test_html_alternative(self, raw_email):
        message = parse_incoming_message(
            raw_email(body="plain text", html="<p>html text</p>"),
            client=CLIENT,
        )
        assert message.text_body.strip() == "plain text"
        assert "<p>html text</p>" in message.html_body

    def test_html_only(self, raw_email):
        message = parse_incoming_message(raw_email(body=None, html="<b>what is my balance</b>"), client=CLIENT)
        assert message.text_body == ""
        assert "<b>what is my balance</b>" in message.html_body

    def test_archive_metadata(self, raw_email):
        message = parse_incoming_message(
            raw_email(to=["pay@paycrypt.example"]),
            client=CLIENT,
            envelope_sender="alice@example.com",
            envelope_recipients=["pay@paycrypt.example"],
        )
        meta = message.archive_metadata()

        assert meta["from"] == "alice@example.com"
        assert meta["to"] == ["pay@paycrypt.example"]
        assert meta["messageId"] == "<msg-1@example.com>"
        assert meta["envelopeFrom"] == "alice@example.com"
        assert meta["envelopeTo"] == ["pay@paycrypt.example"]
        assert meta["clientIP"] == "198.51.100.4"
        assert meta["hostname"] == "mx.example.net"
        assert "date" in meta


class TestSyntheticMessageId:
    """Message-ID is synthesized deterministically when missing"""

    def test_synthetic_id_is_stable(self, raw_email):
        raw = raw_email(message_id=None)

        first = parse_incoming_message(raw, client=CLIENT)
        second = parse_incoming_message(raw, client=CLIENT)

        assert first.message_id.startswith("<synthetic-")
        assert first.message_id.endswith("@paycrypt.generated>")
        assert first.message_id == second.message_id

    def test_different_messages_get_different_ids(self, raw_email):
        a = parse_incoming_message(raw_email(subject="one", message_id=None), client=CLIENT)
        b = parse_incoming_message(raw_email(subject="two", message_id=None), client=CLIENT)
        assert a.message_id != b.message_id


class TestHelpers:

    def test_generate_email_id_unique(self):
        ids = {generate_email_id() for _ in range(100)}
        assert len(ids) == 100
        assert all(i.isalnum() for i in ids)

    def test_parse_mime_message_returns_email_message(self, raw_email):
        msg = parse_mime_message(raw_email(subject="hello"))
        assert msg["Subject"] == "hello"


@pytest.mark.parametrize("body", ["", "just text"])
def test_headerless_input_still_parses(body):
    message = parse_incoming_message(body.encode(), client=CLIENT, email_id="bare")
    assert message.email_id == "bare"
    assert message.to == ()
