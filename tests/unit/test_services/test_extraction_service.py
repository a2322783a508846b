"""
Test Extraction Service
"""

import io
import json

import pytest

from knowledge_rag.core.exceptions import CustomException, ErrorCode
from knowledge_rag.services.extraction_service import (
    DocumentFormat,
    ExtractionService,
    normalize_text,
    resolve_document_format,
)


@pytest.mark.parametrize(
    "mime_type, file_name, expected",
    [
        ("application/pdf", "x.bin", DocumentFormat.PDF),
        (None, "Report.PDF", DocumentFormat.PDF),
        ("application/vnd.openxmlformats-officedocument.wordprocessingml.document", None, DocumentFormat.OFFICE_DOC),
        ("application/octet-stream", "memo.docx", DocumentFormat.OFFICE_DOC),
        ("application/json; charset=utf-8", "data", DocumentFormat.JSON),
        ("text/plain", "data.json", DocumentFormat.JSON),
        ("text/html", "page", DocumentFormat.HTML),
        (None, "page.htm", DocumentFormat.HTML),
        ("text/csv", "table", DocumentFormat.PLAIN_TEXT),
        (None, "README.md", DocumentFormat.PLAIN_TEXT),
        ("application/octet-stream", "blob", DocumentFormat.BINARY_FALLBACK),
    ],
)
def test_resolve_document_format(mime_type, file_name, expected):
    assert resolve_document_format(mime_type, file_name) == expected


def test_normalize_text():
    """去除 CR/NUL、行尾空白，压缩多余空行，保留段落"""
    raw = "Title\r\n\r\n\r\n\r\nFirst\tline   \nsecond\x00 line\n\n\n\nEnd  "
    assert normalize_text(raw) == "Title\n\nFirst line\nsecond line\n\nEnd"


def test_plain_text_extraction():
    service = ExtractionService()
    content = "Knowledge bases store documents.\n\nEach document is split into chunks.".encode("utf-8")

    text = service.extract(content, "text/plain", "notes.txt")

    assert text == "Knowledge bases store documents.\n\nEach document is split into chunks."


def test_utf8_bom_is_removed():
    service = ExtractionService()
    content = "\ufeffCafé menu: croissants, baguettes and espresso for everyone.".encode("utf-8")

    assert service.extract(content, "text/plain", "menu.txt").startswith("Café menu")


def test_json_is_pretty_printed():
    service = ExtractionService()
    content = json.dumps({"name": "widget", "tags": ["a", "b"]}).encode("utf-8")

    text = service.extract(content, "application/json", "widget.json")

    assert json.loads(text) == {"name": "widget", "tags": ["a", "b"]}
    assert '\n  "name": "widget"' in text


def test_invalid_json_falls_back_to_raw_text():
    service = ExtractionService()
    content = b"{not valid json, but still useful text for the index}"

    assert service.extract(content, "application/json", "broken.json") == content.decode("utf-8")


def test_html_extraction_drops_noise():
    service = ExtractionService()
    html = (
        "<html><head><style>p {color: red}</style></head><body>"
        "<header>Site header</header><p>First paragraph.</p><p>Second paragraph.</p>"
        "<script>alert(1)</script><footer>Footer</footer></body></html>"
    ).encode("utf-8")

    text = service.extract(html, "text/html", "page.html")

    assert text == "First paragraph.\n\nSecond paragraph."


def test_docx_extraction():
    from docx import Document as DocxDocument

    document = DocxDocument()
    document.add_paragraph("Quarterly summary")
    document.add_paragraph("Revenue grew in every region.")
    table = document.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Region"
    table.rows[0].cells[1].text = "EMEA"
    buffer = io.BytesIO()
    document.save(buffer)

    text = ExtractionService().extract(buffer.getvalue(), None, "summary.docx")

    assert text == "Quarterly summary\n\nRevenue grew in every region.\n\nRegion | EMEA"


def test_corrupt_pdf_raises_parsing_error():
    with pytest.raises(CustomException) as exc_info:
        ExtractionService().extract(b"definitely not a pdf", "application/pdf", "broken.pdf")
    assert exc_info.value.code == ErrorCode.DOCUMENT_PARSING_FAILED


def test_binary_fallback_decodes_leniently():
    text = ExtractionService().extract(b"abc\xff\xfedef", "application/octet-stream", "blob.bin")
    assert text.startswith("abc") and text.endswith("def")
