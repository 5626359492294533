"""FastAPI dependencies for the app-wide mailer and mail queue.

Both are created once in create_app() and live on app.state, so tests
can hand in a Mailer with an httpx.MockTransport.
"""

from fastapi import Request

from pulseforge.notifications.mailer import Mailer
from pulseforge.notifications.queue import MailQueue


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def get_mail_queue(request: Request) -> MailQueue:
    return request.app.state.mail_queue
