# services/email_service.py
import requests
from pydantic import BaseModel
from assignflow.core.config import settings
import logging

logger = logging.getLogger("assignflow.email")
RESEND_URL = "https://api.resend.com/emails"

ACCENT = "#2563EB"
INK = "#111827"
SANS = "'Inter', -apple-system, sans-serif"

SUBJECTS = {
    "assignment": "Assignment update",
    "message": "New message",
    "report": "Integrity report update",
    "general": "Account update",
}


class EmailData(BaseModel):
    to: str
    subject: str
    html_content: str
    from_email: str = settings.EMAIL_FROM


def send_email(data: EmailData) -> bool:
    """Send through Resend. Returns False when email is not configured."""
    if not settings.RESEND_API_KEY:
        logger.info(f"RESEND_API_KEY not set; skipping email to {data.to}")
        return False

    try:
        headers = {
            "Authorization": f"Bearer {settings.RESEND_API_KEY}",
            "Content-Type": "application/json"
        }
        payload = {
            "from": data.from_email,
            "to": [data.to],
            "subject": data.subject,
            "html": data.html_content
        }
        resp = requests.post(RESEND_URL, json=payload, headers=headers, timeout=10)
        resp.raise_for_status()
        return True
    except Exception as e:
        logger.error(f"Email failed: {e}")
        raise


def notification_email(to: str, name: str, message: str, type: str, link: str = None) -> EmailData:
    url = f"{settings.FRONTEND_URL.rstrip('/')}{link or ''}"
    html_content = f"""
    <div style="font-family:{SANS}; color:{INK}; padding:32px 16px;">
      <div style="max-width:520px; margin:0 auto;">
        <p>Hi {name or 'there'},</p>
        <p style="line-height:1.7;">{message}</p>
        <p style="margin:32px 0;">
          <a href="{url}" style="background:{ACCENT}; color:#fff; padding:12px 28px; border-radius:8px; text-decoration:none;">
            Open {settings.PROJECT_NAME}
          </a>
        </p>
        <p style="font-size:13px; color:#6B7280;">You are receiving this because of activity on your {settings.PROJECT_NAME} account.</p>
      </div>
    </div>
    """
    return EmailData(to=to, subject=f"{settings.PROJECT_NAME}: {SUBJECTS.get(type, SUBJECTS['general'])}", html_content=html_content)
