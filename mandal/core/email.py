import smtplib
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable

from mandal.core.config import settings

logger = logging.getLogger(__name__)

APP_NAME = "Mandal Book"


def _smtp_configured() -> bool:
    return all([settings.SMTP_HOST, settings.SMTP_USER, settings.SMTP_PASSWORD, settings.FROM_EMAIL])


def _send_email(to_email: str, subject: str, plain_text: str, html_text: str) -> bool:
    """Low-level helper to send one email via SMTP. False when SMTP is not configured."""
    if not _smtp_configured():
        logger.warning("SMTP not fully configured; skipping email to %s.", to_email)
        return False

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.FROM_EMAIL
    msg["To"] = to_email
    if settings.REPLY_TO_EMAIL:
        msg["Reply-To"] = settings.REPLY_TO_EMAIL

    msg.attach(MIMEText(plain_text, "plain"))
    msg.attach(MIMEText(html_text, "html"))

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT or 587) as server:
        server.ehlo()
        server.starttls()
        server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.sendmail(settings.FROM_EMAIL, to_email, msg.as_string())
    return True


def _deliver(to_email: str, subject: str, message: str) -> bool:
    """Send a simple one-paragraph email. Failures are logged, never raised."""
    if not to_email:
        return False
    plain_text = f"{message}\n\n{APP_NAME}"
    html_text = f"""
    <html>
    <body style="font-family: Arial, sans-serif; color: #1e3a5f; background: #f0f4ff; padding: 24px;">
      <div style="max-width: 480px; margin: 0 auto; background: #ffffff; border-radius: 12px;
                  border: 2px solid #bfdbfe; padding: 32px;">
        <h2 style="color: #1d4ed8; margin-bottom: 8px;">{subject}</h2>
        <p>{message}</p>
        <p style="font-size: 13px; color: #64748b;">{APP_NAME}</p>
      </div>
    </body>
    </html>
    """
    try:
        sent = _send_email(to_email, subject, plain_text, html_text)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error(f"Failed to send '{subject}' email to {to_email}: {exc}")
        return False
    if sent:
        logger.info(f"'{subject}' email sent to {to_email}")
    return sent


def send_contribution_status_email(to_email: str, name: str, status: str, month: str, remarks: str = "") -> bool:
    if status == "done":
        subject = "Contribution Approved"
        message = f"Hello {name}, your contribution for {month} has been verified and added to the fund."
    else:
        subject = "Contribution Rejected"
        message = f"Hello {name}, your contribution for {month} was rejected."
        if remarks:
            message += f" Remarks: {remarks}"
    return _deliver(to_email, subject, message)


def send_loan_status_email(to_email: str, name: str, status: str, remarks: str = "") -> bool:
    if status == "approved":
        subject = "Loan Request Approved"
        message = f"Hello {name}, your loan request has been approved."
    else:
        subject = "Loan Request Rejected"
        message = f"Hello {name}, your loan request has been rejected."
        if remarks:
            message += f" Remarks: {remarks}"
    return _deliver(to_email, subject, message)


def send_admin_alert(to_emails: Iterable[str], title: str, description: str) -> int:
    """Email every admin; returns how many messages went out."""
    return sum(1 for email in to_emails if _deliver(email, title, description))


def send_contribution_reminder_email(to_email: str, name: str, month: str, day: int) -> bool:
    subject = f"Contribution reminder for {month}"
    message = (
        f"Hello {name}, today is day {day} of the month and we have not received your "
        f"contribution for {month} yet. Please upload your payment slip."
    )
    return _deliver(to_email, subject, message)
