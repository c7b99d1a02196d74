"""Inbound mail ingestion: SMTP listener, HTTP endpoint, admission control."""

from .admission import AdmissionController, AdmissionDecision
from .mime_parser import generate_email_id, parse_incoming_message
from .smtp_handler import AdmissionControlledSMTP, PayCryptSMTPHandler, SMTPGateway

__all__ = [
    "AdmissionController",
    "AdmissionDecision",
    "AdmissionControlledSMTP",
    "PayCryptSMTPHandler",
    "SMTPGateway",
    "generate_email_id",
    "parse_incoming_message",
]
