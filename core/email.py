import html
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
import config

logger = logging.getLogger(__name__)


def send_email(to_email: str, subject: str, body: str) -> bool:
    if not config.SMTP_HOST or not config.SMTP_USER:
        logger.warning("Email not configured, skipping send")
        return False

    try:
        msg = MIMEMultipart()
        msg["From"] = config.SMTP_FROM
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "html"))

        context = ssl.create_default_context()
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT) as server:
            server.starttls(context=context)
            server.login(config.SMTP_USER, config.SMTP_PASSWORD)
            server.sendmail(config.SMTP_FROM, to_email, msg.as_string())

        logger.info(f"Email sent to {to_email}")
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email: {e}")
        return False


def build_confirmation_email(display: str, canonical: str, confirm_url: str, ttl_hours: int) -> tuple[str, str]:
    name = html.escape(display)
    url = html.escape(confirm_url, quote=True)
    subject = f"Confirm your reservation of {display}@{config.DOMAIN}"
    body = f"""
    <html>
    <body style="font-family: Arial, sans-serif; background: #08080f; color: white; padding: 20px;">
        <div style="max-width: 400px; margin: 0 auto; background: rgba(255,255,255,0.05); padding: 30px; border-radius: 15px;">
            <h2 style="text-align: center;">Confirm your name</h2>
            <p>You asked to reserve <strong>{name}</strong> ({html.escape(canonical)}@{html.escape(config.DOMAIN)}).</p>
            <div style="text-align: center; margin: 30px 0;">
                <a href="{url}" style="background: #9333ea; color: white; padding: 12px 24px; text-decoration: none; border-radius: 8px; display: inline-block;">Confirm Reservation</a>
            </div>
            <p style="font-size: 12px; color: #888;">This link expires in {ttl_hours} hours. If you did not request it, ignore this email.</p>
        </div>
    </body>
    </html>
    """
    return subject, body
