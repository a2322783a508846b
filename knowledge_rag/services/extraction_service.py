"""
Text Extraction Service
根据 MIME 类型/扩展名把原始字节转换为纯文本
"""

import io
import json
import os
import re
from enum import Enum
from typing import Callable, Dict, Optional

from bs4 import BeautifulSoup
from charset_normalizer import from_bytes

from knowledge_rag.core.logging import logger
from knowledge_rag.core.exceptions import CustomException, ErrorCode


class DocumentFormat(str, Enum):
    """文档格式（只在入口解析一次，之后按枚举分派）"""
    PDF = "pdf"
    OFFICE_DOC = "office_doc"
    HTML = "html"
    PLAIN_TEXT = "plain_text"
    JSON = "json"
    BINARY_FALLBACK = "binary_fallback"


PLAIN_TEXT_EXTENSIONS = {"txt", "md", "markdown", "csv", "log"}
HTML_EXTENSIONS = {"html", "htm"}
OFFICE_DOC_MIME_TYPES = {
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
# 抽取 HTML 正文时移除的标签
HTML_NOISE_TAGS = ["script", "style", "noscript", "template", "svg", "iframe", "nav", "footer", "header", "form"]

_HORIZONTAL_WHITESPACE = re.compile(r"[\t\f\v]+")
_TRAILING_LINE_WHITESPACE = re.compile(r"[ \t]+\n")
_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")


def _extension(file_name: Optional[str]) -> str:
    return os.path.splitext(file_name or "")[1].lstrip(".").lower()


def resolve_document_format(mime_type: Optional[str], file_name: Optional[str]) -> DocumentFormat:
    """根据 MIME 类型与扩展名确定文档格式"""
    mime = (mime_type or "").split(";")[0].strip().lower()
    ext = _extension(file_name)

    if mime == "application/pdf" or ext == "pdf":
        return DocumentFormat.PDF
    if mime in OFFICE_DOC_MIME_TYPES or ext == "docx":
        return DocumentFormat.OFFICE_DOC
    if mime == "application/json" or ext == "json":
        return DocumentFormat.JSON
    if mime == "text/html" or ext in HTML_EXTENSIONS:
        return DocumentFormat.HTML
    if mime.startswith("text/") or ext in PLAIN_TEXT_EXTENSIONS:
        return DocumentFormat.PLAIN_TEXT
    return DocumentFormat.BINARY_FALLBACK


def normalize_text(text: str) -> str:
    """去除 CR/NUL，制表符等替换为空格，去掉行尾空白，保留段落空行"""
    normalized = text.replace("\r", "").replace("\x00", "")
    normalized = _HORIZONTAL_WHITESPACE.sub(" ", normalized)
    normalized = _TRAILING_LINE_WHITESPACE.sub("\n", normalized)
    normalized = _EXCESS_BLANK_LINES.sub("\n\n", normalized)
    return normalized.strip()


def decode_text(content: bytes) -> str:
    """识别编码并解码文本，无法识别时按 UTF-8 容错解码"""
    match = from_bytes(content).best()
    if match is None:
        return content.decode("utf-8", errors="replace")
    logger.debug(f"检测到文本编码: {match.encoding}")
    return str(match).replace("\ufeff", "")


def html_to_text(html: str) -> str:
    """提取 HTML 可读正文，块级元素之间以空行分隔"""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(HTML_NOISE_TAGS):
        tag.decompose()
    root = soup.find("main") or soup.find("article") or soup.body or soup
    return root.get_text("\n\n", strip=True)


def html_title(html: str) -> Optional[str]:
    soup = BeautifulSoup(html, "lxml")
    if soup.title and soup.title.string:
        return soup.title.string.strip() or None
    return None


class ExtractionService:
    """文本抽取服务"""

    def __init__(self):
        self._extractors: Dict[DocumentFormat, Callable[[bytes], str]] = {
            DocumentFormat.PDF: self._extract_pdf,
            DocumentFormat.OFFICE_DOC: self._extract_docx,
            DocumentFormat.HTML: self._extract_html,
            DocumentFormat.PLAIN_TEXT: decode_text,
            DocumentFormat.JSON: self._extract_json,
            DocumentFormat.BINARY_FALLBACK: self._extract_fallback,
        }

    def extract(self, content: bytes, mime_type: Optional[str], file_name: Optional[str]) -> str:
        """抽取并规范化纯文本"""
        document_format = resolve_document_format(mime_type, file_name)
        logger.info(f"抽取文本: file={file_name}, mime={mime_type}, format={document_format.value}")
        try:
            text = self._extractors[document_format](content)
        except CustomException:
            raise
        except Exception as e:
            raise CustomException(
                code=ErrorCode.DOCUMENT_PARSING_FAILED,
                message=f"文档解析失败({document_format.value}): {e}",
            )
        return normalize_text(text)

    @staticmethod
    def _extract_pdf(content: bytes) -> str:
        import pdfplumber

        pages = []
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            for page in pdf.pages:
                page_text = page.extract_text() or ""
                if page_text.strip():
                    pages.append(page_text)
        return "\n\n".join(pages)

    @staticmethod
    def _extract_docx(content: bytes) -> str:
        from docx import Document as DocxDocument

        document = DocxDocument(io.BytesIO(content))
        paragraphs = [p.text for p in document.paragraphs if p.text and p.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    paragraphs.append(" | ".join(cells))
        return "\n\n".join(paragraphs)

    @staticmethod
    def _extract_html(content: bytes) -> str:
        return html_to_text(decode_text(content))

    @staticmethod
    def _extract_json(content: bytes) -> str:
        raw = decode_text(content)
        try:
            return json.dumps(json.loads(raw), indent=2, ensure_ascii=False)
        except ValueError:
            logger.warning("JSON 解析失败，按原始文本处理")
            return raw

    @staticmethod
    def _extract_fallback(content: bytes) -> str:
        return content.decode("utf-8", errors="replace")
