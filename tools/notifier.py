import logging
import smtplib
from email.message import EmailMessage

from config.settings import settings

logger = logging.getLogger(__name__)


def send_email(to: str, subject: str, text: str, html: str | None = None) -> bool:
    """
    Send one email over SMTP (STARTTLS). Never raises.

    Returns True when the server accepted the message. Without EMAIL_USER /
    EMAIL_PASS the mail is only logged (dev mode) and False is returned.
    Blocking; callers run it in a worker thread.
    """
    user = settings.EMAIL_USER
    password = settings.EMAIL_PASS
    if not user or not password:
        logger.warning("[EMAIL MOCK] Credentials missing. Email would be sent to: %s", to)
        logger.info("[EMAIL CONTENT] Subject: %s | Body: %s", subject, text)
        return False

    msg = EmailMessage()
    msg["From"] = user
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(text)
    msg.add_alternative(html or text, subtype="html")

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.NOTIFIER_TIMEOUT_SEC) as smtp:
            smtp.starttls()
            smtp.login(user, password)
            refused = smtp.send_message(msg)
        if refused:
            logger.error("[EMAIL] Recipient refused %s: %s", to, refused)
            return False
        logger.info("[EMAIL] Sent '%s' to %s", subject, to)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error("[EMAIL FAILED] To %s: %s (error=%s)", to, subject, e)
        return False
    except Exception:
        logger.exception("[EMAIL FAILED] Unexpected error sending to %s", to)
        return False
