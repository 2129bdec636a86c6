import json

from signcompose.utils import sha256_bytes
from signcompose.worker import compose_envelope
from builders import make_pdf, read_pdf


def test_compose_envelope_stores_pdf_and_audit(mock_storage):
    mock_storage["uploads/offer.pdf"] = make_pdf(1)
    document = {
        "id": 42,
        "title": "Offer",
        "files": [
            {
                "storageRef": "uploads/offer.pdf",
                "fields": [{"id": "ok", "type": "checkbox", "leftPercent": 5, "topPercent": 5, "widthPercent": 5, "heightPercent": 5}],
            }
        ],
    }
    signers = [{"email": "buyer@example.com", "signed": True, "fieldValues": {"ok": True}}]

    result = compose_envelope(document, signers)

    assert result["pdf"] == "documents/42/final/Offer-signed.pdf"
    assert result["audit"] == "documents/42/final/Offer-signed.pdf.audit.json"
    pdf = mock_storage[result["pdf"]]
    assert sha256_bytes(pdf) == result["sha256_final"]
    assert "X" in read_pdf(pdf).pages[0].extract_text()
    audit = json.loads(mock_storage[result["audit"]])
    assert audit["document_id"] == "42"
    assert audit["signers"] == ["buyer@example.com"]
    assert audit["sha256_final"] == result["sha256_final"]


def test_compose_envelope_honours_output_key(mock_storage):
    mock_storage["a.pdf"] = make_pdf(1)
    result = compose_envelope(
        {"title": "A", "files": [{"storageRef": "a.pdf"}]},
        [{"email": "s@example.com", "signed": True}],
        output_key="custom/final.pdf",
    )
    assert result["pdf"] == "custom/final.pdf"
    assert "custom/final.pdf" in mock_storage
    assert "custom/final.pdf.audit.json" in mock_storage
