"""Transactional mail via the Brevo HTTP API.

Learn: Mail is one JSON POST to the provider with both a plain-text body
and an HTML rendering of the same message. Any non-2xx answer (or a
transport error) becomes MailDeliveryError. Callers decide whether that
is fatal (support requests) or just logged (background notifications).

The HTTP transport is injectable so tests can plug in
httpx.MockTransport instead of talking to the real provider.
"""

import html
from typing import Optional

import httpx
import structlog

from pulseforge.config import Settings, settings as default_settings
from pulseforge.errors import MailDeliveryError

logger = structlog.get_logger()

# subject keyword → (banner label, icon, accent colour)
_THEMES = (
    ("welcome", ("Welcome", "👋", "#0ea5e9")),
    ("support", ("Support", "🛟", "#334155")),
    ("notification", ("Notification", "🔔", "#4f46e5")),
)
_DEFAULT_THEME = ("Update", "✉️", "#1f2937")


def mail_theme(subject: str) -> tuple[str, str, str]:
    s = subject.strip().lower()
    for keyword, theme in _THEMES:
        if keyword in s:
            return theme
    return _DEFAULT_THEME


def render_mail_html(subject: str, message: str, brand: str = "PulseForge") -> str:
    """Wrap a plain-text message in the branded HTML card."""
    kind, icon, accent = mail_theme(subject)
    safe_subject = html.escape(subject)
    safe_message = html.escape(message).replace("\n", "<br/>")
    return f"""
<html>
  <body style="margin:0;background:#f8fafc;font-family:Segoe UI,Arial,sans-serif;color:#0f172a;">
    <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="padding:24px 12px;">
      <tr><td align="center">
        <table role="presentation" width="100%" cellpadding="0" cellspacing="0"
               style="max-width:640px;background:#ffffff;border:1px solid #e2e8f0;border-radius:14px;overflow:hidden;">
          <tr><td style="padding:18px 20px;background:{accent};color:#ffffff;font-weight:600;">
            <span>{icon}</span> <span>{html.escape(brand)} {kind}</span>
          </td></tr>
          <tr><td style="padding:22px 20px;">
            <h2 style="margin:0 0 12px;font-size:20px;line-height:1.3;">{safe_subject}</h2>
            <p style="margin:0;font-size:14px;line-height:1.7;color:#334155;">{safe_message}</p>
          </td></tr>
          <tr><td style="padding:14px 20px;border-top:1px solid #e2e8f0;font-size:12px;color:#64748b;">
            This is an automated {html.escape(brand)} message.
          </td></tr>
        </table>
      </td></tr>
    </table>
  </body>
</html>"""


class Mailer:
    """Sends single messages through the Brevo transactional API."""

    def __init__(
        self,
        cfg: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cfg = cfg or default_settings
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.cfg.brevo_api_key.strip() and self.cfg.mail_from.strip())

    async def send(self, to: str, subject: str, message: str) -> None:
        """Deliver one message. Raises MailDeliveryError on any failure."""
        api_key = self.cfg.brevo_api_key.strip()
        if not api_key:
            raise MailDeliveryError("BREVO_API_KEY not configured")
        from_email = self.cfg.mail_from.strip()
        if not from_email:
            raise MailDeliveryError("MAIL_FROM not configured")
        from_name = self.cfg.mail_from_name.strip() or "PulseForge"

        body = {
            "sender": {"name": from_name, "email": from_email},
            "to": [{"email": to}],
            "subject": subject,
            "htmlContent": render_mail_html(subject, message, brand=from_name),
            "textContent": message,
        }
        headers = {
            "accept": "application/json",
            "content-type": "application/json",
            "api-key": api_key,
        }

        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=self.cfg.mail_timeout_seconds
            ) as client:
                resp = await client.post(self.cfg.brevo_api_url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise MailDeliveryError(f"mail provider unreachable: {e}")

        if resp.status_code < 200 or resp.status_code >= 300:
            raise MailDeliveryError(
                f"mail provider error: status {resp.status_code}",
                status_code=resp.status_code,
            )
        logger.info("mail.sent", to=to, subject=subject)
