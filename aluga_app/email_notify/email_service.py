import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

import aiosmtplib

from core.breaker import CircuitBreaker
from core.settings import settings

logger = logging.getLogger(__name__)

email_breaker = CircuitBreaker(name="smtp")


class NotificationError(Exception):
    pass


@dataclass(frozen=True)
class BookingConfirmation:
    to_email: str
    booking_id: str
    guest_name: str
    property_title: str
    address_text: str
    check_in_date: datetime
    check_out_date: datetime
    units: int
    total_paid: Decimal
    payment_method: str


def format_brl(value: Decimal) -> str:
    whole, _, cents = f"{Decimal(value):,.2f}".partition(".")
    return f"R$ {whole.replace(',', '.')},{cents}"


def render_booking_confirmation(data: BookingConfirmation) -> str:
    period = (
        f"{data.check_in_date:%d/%m/%Y} a {data.check_out_date:%d/%m/%Y}"
    )
    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6;">
        <h2>Reserva confirmada</h2>
        <p>Olá {escape(data.guest_name or "hóspede")},</p>
        <p>Recebemos o seu pagamento e a sua reserva está garantida.</p>
        <table cellpadding="4">
            <tr><td><b>Reserva</b></td><td>{escape(data.booking_id)}</td></tr>
            <tr><td><b>Imóvel</b></td><td>{escape(data.property_title)}</td></tr>
            <tr><td><b>Endereço</b></td><td>{escape(data.address_text or "-")}</td></tr>
            <tr><td><b>Período</b></td><td>{period}</td></tr>
            <tr><td><b>Unidades</b></td><td>{data.units}</td></tr>
            <tr><td><b>Total pago</b></td><td>{format_brl(data.total_paid)}</td></tr>
            <tr><td><b>Pagamento</b></td><td>{escape(data.payment_method.upper())}</td></tr>
        </table>
        <p>O chat com o anfitrião já está liberado no app.</p>
        <p>Equipe Aluga Aluga</p>
    </body>
    </html>
    """


async def send_booking_confirmation_email(data: BookingConfirmation):
    if not settings.EMAIL_SERVER:
        raise NotificationError("E-mail delivery is not configured.")

    async def handler():
        message = MIMEMultipart("alternative")
        message["Subject"] = f"Reserva confirmada: {data.property_title}"
        message["From"] = settings.EMAIL_SENDER or settings.EMAIL_USER
        message["To"] = data.to_email
        message.attach(MIMEText(render_booking_confirmation(data), "html"))

        await aiosmtplib.send(
            message,
            hostname=settings.EMAIL_SERVER,
            port=settings.EMAIL_PORT,
            username=settings.EMAIL_USER,
            password=settings.EMAIL_PASSWORD,
            start_tls=settings.EMAIL_USE_TLS,
        )

    try:
        await email_breaker.call(handler)
    except Exception as e:
        logger.warning("Booking confirmation e-mail to %s failed: %s", data.to_email, e)
        raise NotificationError(str(e)) from e
