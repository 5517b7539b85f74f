import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from meetslot.core.config import settings
from meetslot.models.booking import Booking
from meetslot.models.booking_request import BookingRequest

logger = logging.getLogger(__name__)


def _send_email_sync(to_email: str, subject: str, html_body: str) -> None:
    """Send email via SMTP (blocking). Run off the event loop."""
    if not settings.email_enabled:
        logger.debug("Email disabled (SMTP not configured), skipping send")
        return
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.from_name} <{settings.from_email}>"
    msg["To"] = to_email
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
        server.starttls()
        server.login(settings.smtp_user, settings.smtp_password)
        server.sendmail(settings.from_email, [to_email], msg.as_string())
    logger.info("Email sent to %s", to_email)


def _html_escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def _when(booking: Booking | BookingRequest) -> tuple[str, str]:
    date_str = booking.start_time.strftime("%A, %B %d, %Y")
    time_str = f"{booking.start_time:%I:%M %p} – {booking.end_time:%I:%M %p} (UTC)"
    return date_str, time_str


def build_booking_html(heading: str, intro: str, booking: Booking | BookingRequest, extra_html: str = "") -> str:
    """Shared HTML body for every booking e-mail."""
    date_str, time_str = _when(booking)
    name = _html_escape(booking.customer_name or "there")
    return f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{_html_escape(heading)}</title></head>
<body style="margin:0;padding:0;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;background-color:#f3f4f6;">
  <table role="presentation" width="100%" cellspacing="0" cellpadding="0">
    <tr>
      <td align="center" style="padding:40px 16px;">
        <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="max-width:560px;background:#ffffff;border-radius:12px;">
          <tr>
            <td style="padding:32px;">
              <h1 style="margin:0 0 8px 0;font-size:22px;color:#111827;">{_html_escape(heading)}</h1>
              <p style="margin:0 0 24px 0;font-size:15px;color:#6b7280;">Hi {name}, {_html_escape(intro)}</p>
              <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{date_str}</p>
              <p style="margin:4px 0 24px 0;font-size:16px;font-weight:600;color:#111827;">{time_str}</p>
              {extra_html}
            </td>
          </tr>
          <tr>
            <td style="padding:24px 32px;background:#f9fafb;border-top:1px solid #e5e7eb;">
              <p style="margin:0;font-size:13px;color:#6b7280;">{_html_escape(settings.site_name)}</p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def confirmation_link(request: BookingRequest) -> str:
    base = settings.public_base_url.rstrip("/")
    return f"{base}/api/v1/public/requests/confirm/{request.confirmation_token}"


class EmailNotifier:
    """Customer-facing booking e-mails; every send runs in a worker thread."""

    async def _send(self, to_email: str, subject: str, html: str) -> None:
        await asyncio.to_thread(_send_email_sync, to_email, subject, html)

    async def booking_confirmed(self, booking: Booking) -> None:
        html = build_booking_html("Booking Confirmed", "your meeting is booked.", booking)
        await self._send(booking.customer_email, f"{settings.site_name} – Booking Confirmed", html)

    async def booking_cancelled(self, booking: Booking) -> None:
        html = build_booking_html("Booking Cancelled", "this meeting has been cancelled.", booking)
        await self._send(booking.customer_email, f"{settings.site_name} – Booking Cancelled", html)

    async def booking_rescheduled(self, booking: Booking) -> None:
        html = build_booking_html("Booking Rescheduled", "your meeting has moved to a new time.", booking)
        await self._send(booking.customer_email, f"{settings.site_name} – Booking Rescheduled", html)

    async def request_received(self, request: BookingRequest) -> None:
        link = confirmation_link(request)
        button = (
            f'<p style="margin:0 0 16px 0;"><a href="{_html_escape(link)}" '
            'style="background:#111827;color:#ffffff;padding:10px 18px;border-radius:6px;'
            'text-decoration:none;">Confirm booking</a></p>'
            f'<p style="margin:0;font-size:13px;color:#6b7280;">This link expires at '
            f"{request.expires_at:%H:%M} UTC.</p>"
        )
        html = build_booking_html(
            "Confirm your booking", "please confirm the time you picked.", request, extra_html=button
        )
        await self._send(request.customer_email, f"{settings.site_name} – Confirm your booking", html)
