"""
Artifact generator tests (PDF + QR code).

Run with: pytest tests/unit/test_artifact_service.py -v
"""

from decimal import Decimal
from unittest.mock import patch

import pytest

from models.buyer import Buyer
from models.event import Batch, Event
from services.artifact_service import (
    TicketArtifactGenerator,
    attachment_filename,
    build_qr_payload,
    build_ticket_fields,
    format_price,
    render_qr_png,
)
from utils.error_handling import ArtifactGenerationError


class TestHelpers:
    def test_qr_payload_format(self):
        assert build_qr_payload("abc123") == "EVENTFLOW-abc123"
        assert build_qr_payload("abc123", prefix="FEST") == "FEST-abc123"

    @pytest.mark.parametrize("price,expected", [
        (Decimal("150"), "150.00"),
        (Decimal("99.9"), "99.90"),
        (Decimal("10.005"), "10.00"),
        (0, "0.00"),
        (None, "0.00"),
        (12.5, "12.50"),
    ])
    def test_format_price(self, price, expected):
        assert format_price(price) == expected

    def test_attachment_filename_sanitizes_title(self):
        assert attachment_filename("Rock in Rio 2026!", "t1") == "Ticket_Rock_in_Rio_2026__t1.pdf"

    def test_qr_png_is_deterministic(self):
        first = render_qr_png("EVENTFLOW-t1")
        assert first.startswith(b"\x89PNG")
        assert render_qr_png("EVENTFLOW-t1") == first

    def test_fields_with_full_data(self, buyer, event, batch):
        fields = dict(build_ticket_fields(buyer, event, batch, "t1"))
        assert fields == {
            "Name": "Ana Souza",
            "Event": "Rock in Rio",
            "Date": "14/03/2026 18:00",
            "Venue": "Parque Olimpico",
            "Batch": "Lote 1",
            "Price": "150.00",
            "ID": "t1",
        }

    def test_fields_fall_back_when_data_missing(self):
        fields = dict(
            build_ticket_fields(Buyer(id="b", name=""), Event(id="e"), Batch(id="l"), "t1")
        )
        assert fields["Name"] == "Guest"
        assert fields["Event"] == "Event"
        assert fields["Date"] == "To be defined"
        assert fields["Venue"] == "To be defined"
        assert fields["Batch"] == "Batch"
        assert fields["Price"] == "0.00"


class TestGenerator:
    def test_generate_returns_pdf(self, buyer, event, batch):
        artifact = TicketArtifactGenerator().generate(buyer, event, batch, "t1")

        assert artifact.pdf.startswith(b"%PDF")
        assert artifact.qr_payload == "EVENTFLOW-t1"
        assert artifact.filename == "Ticket_Rock_in_Rio_t1.pdf"

    def test_generate_is_deterministic(self, buyer, event, batch):
        generator = TicketArtifactGenerator()
        first = generator.generate(buyer, event, batch, "t1")
        second = generator.generate(buyer, event, batch, "t1")
        assert first.qr_payload == second.qr_payload
        assert first.filename == second.filename

    @pytest.mark.parametrize("ticket_id", ["", "   ", None])
    def test_missing_ticket_id_fails(self, buyer, event, batch, ticket_id):
        with pytest.raises(ArtifactGenerationError):
            TicketArtifactGenerator().generate(buyer, event, batch, ticket_id)

    def test_qr_failure_is_wrapped(self, buyer, event, batch):
        with patch("services.artifact_service.render_qr_png", side_effect=RuntimeError("boom")):
            with pytest.raises(ArtifactGenerationError):
                TicketArtifactGenerator().generate(buyer, event, batch, "t1")

    def test_pdf_failure_is_wrapped(self, buyer, event, batch):
        generator = TicketArtifactGenerator()
        with patch.object(generator, "_render_pdf", side_effect=OSError("disk")):
            with pytest.raises(ArtifactGenerationError):
                generator.generate(buyer, event, batch, "t1")
