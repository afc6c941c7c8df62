import smtplib
from datetime import datetime
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape
from loguru import logger

from portal.core.config import settings

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


# Helper to get template
def get_template(template_name):
    return _env.get_template(template_name)


# Helper to send email via SMTP
def send_email_via_smtp(to_email, subject, html_content) -> bool:
    # Only HOST is required. User/Pass are optional (for Mailpit)
    if not settings.SMTP_HOST:
        logger.warning(f"SMTP host not configured. Skipping email to {to_email}.")
        return False

    try:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{settings.EMAILS_FROM_NAME} <{settings.EMAILS_FROM_EMAIL}>"
        msg["To"] = to_email
        msg.attach(MIMEText(html_content, "html"))

        logger.info(f"Connecting to SMTP: {settings.SMTP_HOST}:{settings.SMTP_PORT}")

        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
            server.ehlo()

            # TLS only on submission ports; Mailpit on 1025 runs without it
            if settings.SMTP_PORT in [587, 2525]:
                server.starttls()
                server.ehlo()

            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)

            server.sendmail(settings.EMAILS_FROM_EMAIL, to_email, msg.as_string())

        logger.success(f"Email sent successfully to {to_email}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


# ---------------------------------------------------------
# 1. EMAIL VERIFICATION
# ---------------------------------------------------------
def send_verification_email(user_data: dict, token: str) -> bool:
    """
    user_data requires: email; optional: first_name, username
    """
    try:
        template = get_template("verify_email.html")
        html_content = template.render(
            name=user_data.get("first_name") or user_data.get("username") or "there",
            verify_url=f"{settings.FRONTEND_URL}/verify-email?token={token}",
            year=datetime.now().year,
        )
    except Exception as e:
        logger.error(f"Error preparing verification email: {e}")
        return False
    return send_email_via_smtp(user_data.get("email"), "Verify your PSU Portal account", html_content)


# ---------------------------------------------------------
# 2. WELCOME EMAIL (admin-created accounts)
# ---------------------------------------------------------
def send_welcome_email(user_data: dict) -> bool:
    try:
        template = get_template("welcome.html")
        html_content = template.render(
            name=user_data.get("first_name") or user_data.get("username"),
            username=user_data.get("username"),
            email=user_data.get("email"),
            user_type=user_data.get("user_type"),
            login_url=f"{settings.FRONTEND_URL}/login",
            year=datetime.now().year,
        )
    except Exception as e:
        logger.error(f"Error preparing welcome email: {e}")
        return False
    return send_email_via_smtp(user_data.get("email"), "Welcome to the PSU Portal", html_content)
