import io

import pytest
from pypdf import PdfReader, PdfWriter
from reportlab.pdfgen import canvas

from signcompose.merger import PageMap, PageSpan
from signcompose.schemas import Field
from signcompose.stamping import apply_signer_fields, decode_signature, fit_text, plan_draw_ops
from builders import SIGNATURE_DATA_URI, make_data_uri, make_pdf, text_positions

W, H = 612, 792


def writer_for(*pdfs):
    writer = PdfWriter()
    spans, start = [], 0
    for index, data in enumerate(pdfs):
        reader = PdfReader(io.BytesIO(data))
        for page in reader.pages:
            writer.add_page(page)
        spans.append(PageSpan(index, start, len(reader.pages)))
        start += len(reader.pages)
    return writer, PageMap.from_spans(spans)


def field(fid, ftype, page=1, left=10, top=20, width=30, height=5):
    return Field(
        id=fid,
        type=ftype,
        page_number=page,
        position={"left_percent": left, "top_percent": top, "width_percent": width, "height_percent": height},
    )


def only_op(draw_map, page=0):
    assert list(draw_map) == [page]
    assert len(draw_map[page]) == 1
    return draw_map[page][0]


def test_text_field_is_vertically_centred():
    writer, page_map = writer_for(make_pdf(2))
    op = only_op(plan_draw_ops(writer, page_map, [(0, field("t", "text"))], {"t": "John Doe"}))
    height = 0.05 * H
    size = max(8, min(height * 0.6, 14))
    assert op["text"] == "John Doe"
    assert op["size"] == pytest.approx(size)
    assert op["x"] == pytest.approx(0.10 * W + 2)
    assert op["y"] == pytest.approx(H - 0.20 * H - height + height / 2 - size / 2)


@pytest.mark.parametrize("height_percent,size", [(0.5, 8), (2, 0.02 * H * 0.6), (10, 14)])
def test_font_size_is_clamped(height_percent, size):
    writer, page_map = writer_for(make_pdf())
    f = field("t", "name", height=height_percent)
    op = only_op(plan_draw_ops(writer, page_map, [(0, f)], {"t": "Jo"}))
    assert op["size"] == pytest.approx(size)


def test_long_text_is_truncated_to_box_width():
    writer, page_map = writer_for(make_pdf())
    f = field("t", "email", width=5)
    op = only_op(plan_draw_ops(writer, page_map, [(0, f)], {"t": "someone.with.a.long.address@example.com"}))
    assert 0 < len(op["text"]) < len("someone.with.a.long.address@example.com")
    assert fit_text(op["text"], op["size"], 0.05 * W - 4) == op["text"]


@pytest.mark.parametrize("value,drawn", [(True, True), ("true", True), (False, False), ("false", False), (None, False), ("", False)])
def test_checkbox_semantics(value, drawn):
    writer, page_map = writer_for(make_pdf())
    f = field("c", "checkbox", width=5, height=5)
    values = {} if value is None else {"c": value}
    draw_map = plan_draw_ops(writer, page_map, [(0, f)], values)
    if not drawn:
        assert draw_map == {}
        return
    op = only_op(draw_map)
    box_w, box_h = 0.05 * W, 0.05 * H
    size = min(box_w, box_h) * 0.8
    assert op["text"] == "X"
    assert op["size"] == pytest.approx(size)
    assert op["x"] == pytest.approx(0.10 * W + (box_w - size) / 2)


def test_signature_image_fills_box():
    writer, page_map = writer_for(make_pdf())
    op = only_op(plan_draw_ops(writer, page_map, [(0, field("s", "signature"))], {"s": SIGNATURE_DATA_URI}))
    assert op["type"] == "image"
    assert (op["w"], op["h"]) == pytest.approx((0.30 * W, 0.05 * H))


def test_jpeg_signature_is_accepted():
    image = decode_signature(make_data_uri(fmt="JPEG", mime="image/jpeg"))
    assert image.size == (40, 20)


@pytest.mark.parametrize(
    "value",
    [
        "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAAB",
        "data:image/png;base64,iVBORw0KGgo!!!corrupt@@payload",
        "data:image/png;base64,not-an-image-at-all====",
        "data:image/gif;base64,R0lGODlhAQABAAAAACw=",
    ],
)
def test_corrupt_signature_falls_back_to_text(value):
    writer, page_map = writer_for(make_pdf())
    op = only_op(plan_draw_ops(writer, page_map, [(0, field("s", "signature"))], {"s": value}))
    assert op == {
        "type": "text",
        "x": pytest.approx(0.10 * W + 2),
        "y": pytest.approx(H - 0.20 * H - 0.05 * H / 2),
        "text": "Signed",
        "size": pytest.approx(min(0.05 * H * 0.6, 12)),
    }


def test_corrupt_initial_falls_back_to_initialed():
    writer, page_map = writer_for(make_pdf())
    value = "data:image/jpeg;base64,/9j/AAAA"
    op = only_op(plan_draw_ops(writer, page_map, [(0, field("i", "initial"))], {"i": value}))
    assert op["text"] == "Initialed"


def test_plain_text_signature_is_drawn_as_text():
    writer, page_map = writer_for(make_pdf())
    op = only_op(plan_draw_ops(writer, page_map, [(0, field("s", "signature"))], {"s": "J. Doe"}))
    assert op["type"] == "text"
    assert op["text"] == "J. Doe"


def test_unplaceable_fields_are_skipped(caplog):
    writer, page_map = writer_for(make_pdf(1))
    fields = [
        (0, field("a", "text", page=3)),
        (4, field("b", "text")),
        (0, Field(id="c", type="text")),
        (0, field("d", "stamp")),
        (0, field("e", "date")),
    ]
    values = {k: "2024-01-15" for k in "abcde"}
    op = only_op(plan_draw_ops(writer, page_map, fields, values))
    assert op["text"] == "2024-01-15"
    assert "field a" in caplog.text
    assert "field b" in caplog.text
    assert "Field c has no valid coordinates" in caplog.text
    assert "Unknown field type 'stamp'" in caplog.text


def test_apply_draws_onto_the_page():
    writer, page_map = writer_for(make_pdf(2))
    drawn = apply_signer_fields(writer, page_map, [(0, field("t", "text", page=2))], {"t": "John Doe"})
    assert drawn == 1
    assert "John Doe" not in writer.pages[0].extract_text()
    positions = [p for p in text_positions(writer.pages[1]) if p[0] == "John Doe"]
    assert len(positions) == 1
    _, x, y = positions[0]
    assert x == pytest.approx(0.10 * W + 2, abs=0.5)
    assert y < H - 0.20 * H


def test_overlay_follows_offset_mediabox():
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=(W, H))
    c.showPage()
    c.save()
    reader = PdfReader(io.BytesIO(buf.getvalue()))
    page = reader.pages[0]
    page.mediabox.lower_left = (100, 100)
    page.mediabox.upper_right = (100 + W, 100 + H)
    writer = PdfWriter()
    writer.add_page(page)
    page_map = PageMap.from_spans([PageSpan(0, 0, 1)])
    apply_signer_fields(writer, page_map, [(0, field("t", "text"))], {"t": "Offset"})
    _, x, _ = [p for p in text_positions(writer.pages[0]) if p[0] == "Offset"][0]
    assert x == pytest.approx(100 + 0.10 * W + 2, abs=0.5)


def test_signature_image_is_embedded():
    writer, page_map = writer_for(make_pdf())
    apply_signer_fields(writer, page_map, [(0, field("s", "signature"))], {"s": SIGNATURE_DATA_URI})
    xobjects = writer.pages[0]["/Resources"]["/XObject"]
    assert any(xobjects[name].get_object()["/Subtype"] == "/Image" for name in xobjects)
