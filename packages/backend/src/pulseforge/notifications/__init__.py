"""Outbound mail — provider client plus a bounded background queue."""

from pulseforge.notifications.mailer import Mailer
from pulseforge.notifications.queue import MailMessage, MailQueue

__all__ = ["Mailer", "MailMessage", "MailQueue"]
