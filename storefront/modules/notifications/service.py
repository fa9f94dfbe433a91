import logging
from html import escape
from typing import Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content

from storefront.core.config import Settings
from storefront.core.exceptions import EmailDeliveryError
from storefront.modules.notifications.schemas import PaymentConfirmationEmail

logger = logging.getLogger(__name__)

def format_money(amount_in_cents: int, currency: str) -> str:
    whole, cents = divmod(amount_in_cents, 100)
    return f"${whole:,}.{cents:02d} {currency}"

def render_payment_confirmation(payload: PaymentConfirmationEmail) -> str:
    rows = "".join(
        f"<tr><td>{escape(item.product_name)}</td><td>{item.quantity}</td>"
        f"<td>{item.unit_price:,.2f}</td><td>{item.total_price:,.2f}</td></tr>"
        for item in payload.items
    )
    return (
        f"<p>Hola {escape(payload.buyer_name)},</p>"
        f"<p>Tu pago fue recibido. Estado: <strong>{escape(payload.status)}</strong>.</p>"
        "<table><thead><tr><th>Producto</th><th>Cantidad</th><th>Precio</th><th>Total</th></tr></thead>"
        f"<tbody>{rows}</tbody></table>"
        f"<p>Total: {format_money(payload.total_amount, payload.currency)}</p>"
        f"<p>Referencia de pago: {escape(payload.payment_id)}<br>"
        f"Fecha: {payload.purchase_date:%Y-%m-%d %H:%M}<br>"
        f"Contacto: {escape(payload.buyer_contact_number)}</p>"
    )

class EmailService:
    """Service for sending emails via SendGrid"""

    def __init__(self, api_key: Optional[str], from_email: str, from_name: str, client: Optional[SendGridAPIClient] = None):
        self.from_email = from_email
        self.from_name = from_name
        if client is not None:
            self.client = client
        elif api_key:
            self.client = SendGridAPIClient(api_key)
        else:
            logger.warning("[Email] SENDGRID_API_KEY not set - emails will not be sent")
            self.client = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailService":
        return cls(settings.SENDGRID_API_KEY, settings.SENDGRID_FROM_EMAIL, settings.SENDGRID_FROM_NAME)

    def send_email(self, to_email: str, subject: str, html_content: str) -> bool:
        """
        Send one email.

        Returns False when SendGrid is not configured. Raises EmailDeliveryError
        when SendGrid rejects the message or cannot be reached.
        """
        if not self.client:
            logger.warning(f"[Email] Skipping '{subject}' to {to_email}: SendGrid not configured")
            return False

        message = Mail(
            from_email=Email(self.from_email, self.from_name),
            to_emails=To(to_email),
            subject=subject,
            html_content=Content("text/html", html_content),
        )
        try:
            response = self.client.send(message)
        except Exception as e:
            logger.error(f"[Email] SendGrid error sending to {to_email}: {e}", exc_info=True)
            raise EmailDeliveryError(f"Could not send email to {to_email}") from e

        if not 200 <= response.status_code < 300:
            logger.error(f"[Email] SendGrid returned {response.status_code} for {to_email}")
            raise EmailDeliveryError(f"SendGrid returned {response.status_code}")

        logger.info(f"[Email] Sent '{subject}' to {to_email}")
        return True

    def send_payment_confirmation_email(self, payload: PaymentConfirmationEmail) -> bool:
        subject = f"Confirmación de pago - {payload.payment_id}"
        return self.send_email(payload.buyer_email, subject, render_payment_confirmation(payload))
