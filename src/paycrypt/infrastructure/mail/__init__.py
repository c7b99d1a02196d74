"""Outbound mail adapters."""

from .smtp_sender import SMTPMailSender

__all__ = ["SMTPMailSender"]
