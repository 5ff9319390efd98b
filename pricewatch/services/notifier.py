"""
PriceWatch Notification Service
Price-drop notifications: log-only default and SMTP email
"""
import asyncio
import html
import logging
import smtplib
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

from pricewatch.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class PriceDropNotifier(ABC):
    """Receives one call per detected price drop"""

    @abstractmethod
    async def on_price_drop(
        self,
        item_id: str,
        url: str,
        current_price: float,
        target_price: float,
        recipient: str,
        platform: Optional[str] = None,
    ) -> None:
        """``platform`` is the id stored on the alert when the caller has it"""


class LogNotifier(PriceDropNotifier):
    """Records drops in the log without delivering anything"""

    async def on_price_drop(self, item_id, url, current_price, target_price, recipient, platform=None) -> None:
        logger.warning(
            "Price drop for alert %s (%s): ₹%.2f <= ₹%.2f target, recipient %s",
            item_id, url, current_price, target_price, recipient,
        )


class EmailNotifier(PriceDropNotifier):
    """Email notifications via SMTP"""

    def __init__(self, config: Settings = default_settings):
        self.host = config.SMTP_HOST
        self.port = config.SMTP_PORT
        self.user = config.SMTP_USER
        self.password = config.SMTP_PASSWORD
        self.from_email = config.FROM_EMAIL
        self.from_name = config.FROM_NAME
        self.use_tls = config.SMTP_TLS

    def is_configured(self) -> bool:
        return all([self.host, self.user, self.password, self.from_email])

    async def on_price_drop(self, item_id, url, current_price, target_price, recipient, platform=None) -> None:
        if not self.is_configured():
            logger.warning("SMTP not configured; skipping email for alert %s", item_id)
            return

        platform_label = platform_label_for(platform)
        subject = build_subject(current_price, target_price, platform_label)

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = recipient
        msg.attach(MIMEText(build_text(url, current_price, target_price), "plain"))
        msg.attach(MIMEText(build_html(url, current_price, target_price, platform_label), "html"))

        # smtplib blocks; keep it off the event loop
        await asyncio.get_running_loop().run_in_executor(None, self._send_email, recipient, msg)
        logger.info("Email sent to %s for alert %s", recipient, item_id)

    def _send_email(self, recipient: str, msg: MIMEMultipart):
        with smtplib.SMTP(self.host, self.port) as server:
            if self.use_tls:
                server.starttls()
            server.login(self.user, self.password)
            server.sendmail(self.from_email, recipient, msg.as_string())


def platform_label_for(platform: Optional[str]) -> str:
    return platform.replace("_", " ").upper() if platform else "STORE"


def savings(current_price: float, target_price: float) -> float:
    return max(target_price - current_price, 0.0)


def discount_percent(current_price: float, target_price: float) -> int:
    return round(savings(current_price, target_price) / target_price * 100)


def build_subject(current_price: float, target_price: float, platform_label: str) -> str:
    return f"Price Drop Alert! Save ₹{savings(current_price, target_price):.0f} on {platform_label}"


def build_text(url: str, current_price: float, target_price: float) -> str:
    return (
        f"The price dropped to ₹{current_price:.2f}, at or below your target of ₹{target_price:.2f}.\n"
        f"View the product: {url}\n"
    )


def build_html(url: str, current_price: float, target_price: float, platform_label: Optional[str] = None) -> str:
    """Build HTML email template"""
    safe_url = html.escape(url, quote=True)
    label = html.escape(platform_label or "STORE")
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
    </head>
    <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
        <div style="background: linear-gradient(135deg, #6366f1, #ec4899); color: white; padding: 20px; border-radius: 8px 8px 0 0;">
            <h1 style="margin: 0; font-size: 24px;">Price Drop Alert!</h1>
            <p style="margin: 5px 0 0 0; opacity: 0.9;">Your target price has been reached</p>
        </div>
        <div style="border: 1px solid #e0e0e0; border-top: none; padding: 20px; border-radius: 0 0 8px 8px;">
            <span style="background: #ec4899; color: white; padding: 4px 12px; border-radius: 20px; font-size: 12px;">{label}</span>
            <p style="margin: 15px 0 5px 0; color: #6b7280;">Target: ₹{target_price:.2f}</p>
            <p style="margin: 5px 0; font-size: 32px; font-weight: bold; color: #10b981;">Now: ₹{current_price:.2f}</p>
            <p style="margin: 5px 0;">Save ₹{savings(current_price, target_price):.0f} ({discount_percent(current_price, target_price)}% below target)</p>
            <a href="{safe_url}" style="display: inline-block; background: #6366f1; color: white; padding: 10px 20px; text-decoration: none; border-radius: 5px; margin-top: 10px;">View Product</a>
        </div>
        <div style="text-align: center; color: #666; font-size: 12px; margin-top: 20px;">
            <p>This alert was sent because the price dropped to or below your target of ₹{target_price:.2f}.</p>
        </div>
    </body>
    </html>
    """


def build_notifier(config: Settings = default_settings) -> PriceDropNotifier:
    """Email when SMTP is fully configured, log-only otherwise"""
    email = EmailNotifier(config)
    if email.is_configured():
        return email
    return LogNotifier()
