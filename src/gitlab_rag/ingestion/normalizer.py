"""Format-dispatched decoding of raw file bytes into clean plain text."""

from __future__ import annotations

import io
import re
import unicodedata
from enum import Enum

from bs4 import BeautifulSoup
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from gitlab_rag.errors import DecodeError, EmptyContent, UnsupportedFormat

_HORIZONTAL_WS = re.compile(r"[ \t\x0b\f\r]+")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_INVISIBLE_TAGS = ["script", "style", "noscript", "template"]
_BLOCK_TAGS = [
    "address", "article", "aside", "blockquote", "br", "dd", "div", "dl", "dt",
    "figcaption", "figure", "footer", "form", "h1", "h2", "h3", "h4", "h5", "h6",
    "header", "hr", "li", "main", "nav", "ol", "p", "pre", "section", "table",
    "td", "th", "tr", "ul",
]
# Paragraph separator marks block boundaries while inline whitespace collapses.
_BLOCK_BREAK = "\u2029"
_INLINE_WS = re.compile(r"[^\S\u2029]+")


def extension_of(path: str) -> str:
    """Lower-cased extension without the dot (``""`` when there is none)."""
    name = path.rsplit("/", 1)[-1]
    _, dot, ext = name.rpartition(".")
    return ext.lower() if dot else ""


class DocumentFormat(str, Enum):
    PLAIN = "plain"
    HTML = "html"
    PDF = "pdf"

    @classmethod
    def for_extension(cls, ext: str) -> DocumentFormat:
        try:
            return _EXTENSIONS[ext.lower()]
        except KeyError:
            raise UnsupportedFormat(f"unsupported extension {ext!r}") from None

    @classmethod
    def for_path(cls, path: str) -> DocumentFormat:
        return cls.for_extension(extension_of(path))


_EXTENSIONS: dict[str, DocumentFormat] = {
    "md": DocumentFormat.PLAIN,
    "txt": DocumentFormat.PLAIN,
    "html": DocumentFormat.HTML,
    "htm": DocumentFormat.HTML,
    "pdf": DocumentFormat.PDF,
}


def normalize_plain(text: str) -> str:
    """Generic whitespace / control-character cleanup for plain text.

    Newlines survive (headings and front matter depend on them); every
    other Unicode control/format character becomes a space, horizontal
    whitespace runs collapse to one space and blank-line runs to one
    blank line.
    """
    if not text:
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = text.lstrip("\ufeff")
    text = "".join(
        " " if ch != "\n" and unicodedata.category(ch).startswith("C") else ch
        for ch in text
    )
    text = _HORIZONTAL_WS.sub(" ", text)
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    return text.strip()


class ContentNormalizer:
    """Turns raw bytes into normalized text, one decoder per format."""

    def decode(self, path: str, data: bytes) -> str:
        """Decode *data* according to *path*'s extension.

        Raises
        ------
        UnsupportedFormat
            The extension is not one of md/txt/html/htm/pdf.
        EmptyContent
            Nothing but whitespace survives normalization.
        DecodeError
            The bytes are not a readable document of that format.
        """
        fmt = DocumentFormat.for_path(path)
        if fmt is DocumentFormat.PLAIN:
            text = self.plain_to_text(data)
        elif fmt is DocumentFormat.HTML:
            text = self.html_to_text(data)
        else:
            text = normalize_plain("\n".join(self.pdf_pages(data)))
        if not text.strip():
            raise EmptyContent(f"no text left after normalizing {path}")
        return text

    def decode_pages(self, path: str, data: bytes) -> list[tuple[int, str]]:
        """Like :meth:`decode` but keeps PDF page boundaries.

        Returns ``(page_number, text)`` pairs with 1-based page numbers;
        empty pages are dropped.  Non-PDF input yields a single page 1.
        """
        if DocumentFormat.for_path(path) is not DocumentFormat.PDF:
            return [(1, self.decode(path, data))]
        pages = [
            (number, normalize_plain(raw))
            for number, raw in enumerate(self.pdf_pages(data), start=1)
        ]
        pages = [(number, text) for number, text in pages if text]
        if not pages:
            raise EmptyContent(f"no text left after normalizing {path}")
        return pages

    @staticmethod
    def plain_to_text(data: bytes) -> str:
        return normalize_plain(data.decode("utf-8", errors="replace"))

    @staticmethod
    def html_to_text(data: bytes) -> str:
        """HTML → visible text → normalize.

        Block elements start a new line; text inside a block, inline markup
        included, stays on one line with its whitespace collapsed.
        """
        if not data:
            return ""
        soup = BeautifulSoup(data.decode("utf-8", errors="replace"), "html.parser")
        for tag in soup(_INVISIBLE_TAGS):
            tag.decompose()
        for tag in soup.find_all(_BLOCK_TAGS):
            tag.insert_before(_BLOCK_BREAK)
            tag.insert_after(_BLOCK_BREAK)
        text = _INLINE_WS.sub(" ", soup.get_text())
        lines = (line.strip() for line in text.split(_BLOCK_BREAK))
        return normalize_plain("\n".join(line for line in lines if line))

    @staticmethod
    def pdf_pages(data: bytes) -> list[str]:
        """Extract raw text of every page, in page order."""
        try:
            reader = PdfReader(io.BytesIO(data))
            return [page.extract_text() or "" for page in reader.pages]
        except (PyPdfError, ValueError, OSError) as exc:
            raise DecodeError(f"unreadable PDF: {exc}") from exc
