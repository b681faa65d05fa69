import smtplib
from email.message import EmailMessage
from bazaar.config.admin_config import admin_config
from bazaar.config.settings import config_settings
from bazaar.common.logging_setup import get_logger

logger = get_logger("bazaar.notifications")


def send_email(*, to_email: str, subject: str, body: str) -> None:
    if admin_config.ENV == "dev":
        logger.info("mail.skipped_dev", extra={"email": to_email, "subject": subject})
        return

    msg = EmailMessage()
    msg["From"] = config_settings.SMTP_FROM
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    try:
        with smtplib.SMTP(config_settings.SMTP_HOST, config_settings.SMTP_PORT, timeout=10) as server:
            if config_settings.SMTP_USE_TLS:
                server.starttls()
            if config_settings.SMTP_USERNAME and config_settings.SMTP_PASSWORD:
                server.login(config_settings.SMTP_USERNAME, config_settings.SMTP_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError):
        # background task, the response is already sent
        logger.exception("mail.send_failed", extra={"email": to_email, "subject": subject})
        return

    logger.info("mail.sent", extra={"email": to_email, "subject": subject})


def send_password_reset(to_email: str, token: str) -> None:
    link = f"{config_settings.FRONTEND_URL}/reset-password?token={token}"
    body = (
        "Someone asked to reset the password for your Bazaar account.\n\n"
        f"Use this link within {config_settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes:\n{link}\n\n"
        "If it wasn't you, ignore this mail."
    )
    send_email(to_email=to_email, subject="Reset your password", body=body)


def send_email_verification(to_email: str, token: str) -> None:
    link = f"{config_settings.FRONTEND_URL}/verify-email?token={token}"
    body = f"Welcome to Bazaar.\n\nConfirm your email address:\n{link}\n"
    send_email(to_email=to_email, subject="Confirm your email", body=body)
