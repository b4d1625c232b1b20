"""
Ticket artifact generation.

Pure function of (buyer, event, batch, ticket id): a one-page A4 PDF with the
ticket details and a QR code whose payload is ``<prefix>-<ticket id>``, so a
scanner can map it back to the ticket document. Safe to retry freely.
"""

from __future__ import annotations

import io
import re
from decimal import Decimal
from typing import List, Tuple, Union

import qrcode
from qrcode.constants import ERROR_CORRECT_H
from qrcode.image.pil import PilImage
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from models.buyer import Buyer
from models.event import Batch, Event
from models.purchase import TicketArtifact
from models.timestamp import UNSPECIFIED, format_timestamp
from utils.error_handling import ArtifactGenerationError
from utils.logging_config import get_logger

logger = get_logger(__name__)

PAGE_MARGIN = 50
TITLE_COLOR = HexColor("#1E40AF")
FOOTER_COLOR = HexColor("#6B7280")
FOOTER_TEXT = "Present this QR code at the event entrance"


def build_qr_payload(ticket_id: str, prefix: str = "EVENTFLOW") -> str:
    """Deterministic scannable payload for a ticket."""
    return f"{prefix}-{ticket_id}"


def format_price(price: Union[Decimal, int, float, str, None]) -> str:
    """Two decimal places, no currency symbol."""
    return f"{Decimal(str(price or 0)):.2f}"


def attachment_filename(event_title: str, ticket_id: str) -> str:
    safe_title = re.sub(r"[^a-zA-Z0-9]", "_", event_title or "Event")
    return f"Ticket_{safe_title}_{ticket_id}.pdf"


def render_qr_png(payload: str) -> bytes:
    """Encode the payload as a PNG QR code with high error correction."""
    qr = qrcode.QRCode(
        error_correction=ERROR_CORRECT_H,
        box_size=10,
        border=4,
        image_factory=PilImage,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    image.save(buf)
    return buf.getvalue()


def build_ticket_fields(
    buyer: Buyer,
    event: Event,
    batch: Batch,
    ticket_id: str,
    tz_name: str = "America/Sao_Paulo",
) -> List[Tuple[str, str]]:
    """Label/value lines printed on the ticket, with fallbacks for gaps."""
    return [
        ("Name", buyer.name or "Guest"),
        ("Event", event.title or "Event"),
        ("Date", format_timestamp(event.starts_at, tz_name)),
        ("Venue", event.venue or UNSPECIFIED),
        ("Batch", batch.name or "Batch"),
        ("Price", format_price(batch.price)),
        ("ID", ticket_id),
    ]


class TicketArtifactGenerator:
    """Builds the printable ticket PDF."""

    def __init__(
        self,
        qr_prefix: str = "EVENTFLOW",
        display_timezone: str = "America/Sao_Paulo",
        brand: str = "EventFlow",
    ):
        self.qr_prefix = qr_prefix
        self.display_timezone = display_timezone
        self.brand = brand

    def generate(self, buyer: Buyer, event: Event, batch: Batch, ticket_id: str) -> TicketArtifact:
        """Render the ticket.

        Raises:
            ArtifactGenerationError: Missing ticket id, or the QR code or PDF
                could not be produced. No ticket is ever emitted without a
                valid QR code.
        """
        if not isinstance(ticket_id, str) or not ticket_id.strip():
            raise ArtifactGenerationError("Ticket id is required to build the QR code")

        payload = build_qr_payload(ticket_id, self.qr_prefix)
        try:
            fields = build_ticket_fields(buyer, event, batch, ticket_id, self.display_timezone)
            qr_png = render_qr_png(payload)
            pdf = self._render_pdf(fields, qr_png, ticket_id)
        except Exception as exc:
            logger.exception("Ticket artifact generation failed", extra={"ticket_id": ticket_id})
            raise ArtifactGenerationError() from exc

        return TicketArtifact(
            pdf=pdf,
            qr_payload=payload,
            filename=attachment_filename(event.title, ticket_id),
        )

    def _render_pdf(self, fields: List[Tuple[str, str]], qr_png: bytes, ticket_id: str) -> bytes:
        buf = io.BytesIO()
        width, height = A4
        pdf = canvas.Canvas(buf, pagesize=A4, invariant=1)
        pdf.setTitle(f"{self.brand} ticket {ticket_id}")

        y = height - PAGE_MARGIN - 24
        pdf.setFillColor(TITLE_COLOR)
        pdf.setFont("Helvetica-Bold", 24)
        pdf.drawCentredString(width / 2, y, f"{self.brand.upper()} TICKET")

        y -= 40
        pdf.setFillColor(HexColor("#000000"))
        pdf.setFont("Helvetica", 12)
        for label, value in fields:
            pdf.drawString(PAGE_MARGIN, y, f"{label}: {value}")
            y -= 18

        # QR code: a third of the page width, centered.
        size = width / 3
        y -= size + 12
        pdf.drawImage(
            ImageReader(io.BytesIO(qr_png)),
            (width - size) / 2,
            y,
            width=size,
            height=size,
        )

        y -= 28
        pdf.setFillColor(FOOTER_COLOR)
        pdf.setFont("Helvetica", 10)
        pdf.drawCentredString(width / 2, y, FOOTER_TEXT)

        pdf.showPage()
        pdf.save()
        return buf.getvalue()
