"""Outcome notifications to transaction participants."""

from .composer import NotificationComposer
from .dispatcher import DeliveryOutcome, DispatchReport, NotificationDispatcher

__all__ = ["NotificationComposer", "NotificationDispatcher", "DeliveryOutcome", "DispatchReport"]
