"""Recover text from submitted documents."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import re
from pathlib import Path
from typing import Optional, Tuple

import httpx
from html_to_markdown import convert_to_markdown

from gradeflow.libs.config_loader import ConfigType, get_config
from .models import (
    DocumentRef,
    ExtractedText,
    ExtractionError,
    ExtractionPolicy,
    InlineDocument,
    LocalDocument,
    RemoteDocument,
)

LOG = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r'^data:(?P<media_type>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$', re.DOTALL)


def parse_document_ref(value: str) -> DocumentRef:
    """
    Turn a document string into a typed reference.

    Accepts http(s) URLs, file:// URLs, data:<type>;base64,<payload> URLs and bare paths.
    """
    value = value.strip()
    if not value:
        raise ValueError("Empty document reference")
    if value.startswith(('http://', 'https://')):
        return RemoteDocument(url=value)
    if value.startswith('file://'):
        return LocalDocument(path=value[len('file://'):])
    match = DATA_URL_PATTERN.match(value)
    if match:
        return InlineDocument(data=match.group('data'), media_type=match.group('media_type'))
    if value.startswith('data:'):
        raise ValueError("Only base64 data URLs are supported")
    return LocalDocument(path=value)


def policy_from_config(configs: ConfigType) -> ExtractionPolicy:
    """Apply configuration overrides to the default extraction policy."""
    overrides = get_config("grading.extraction", configs, default={}) or {}
    fields = ExtractionPolicy.__dataclass_fields__.keys()  # type: ignore[attr-defined]
    return ExtractionPolicy(**{k: v for k, v in overrides.items() if k in fields})


def clean_html(content: str) -> str:
    """Strip script/style/noscript/iframe blocks and attributes from HTML."""
    for tag in ('script', 'style', 'noscript', 'iframe'):
        content = re.sub(rf'<{tag}[^>]*>.*?</{tag}>', '', content, flags=re.IGNORECASE | re.DOTALL)
    content = re.sub(r'<iframe[^>]*/>', '', content, flags=re.IGNORECASE)
    return re.sub(r'<(\w+)[^>]*?(/?)>', r'<\1\2>', content)


def html_to_text(content: str) -> str:
    """Render (possibly untrusted) HTML as markdown text."""
    return convert_to_markdown(clean_html(content), heading_style="atx").strip()


def clamp_text(text: str, max_bytes: int) -> Tuple[str, bool]:
    """Cut text to at most max_bytes of UTF-8."""
    encoded = text.encode("utf-8", errors="ignore")
    if len(encoded) <= max_bytes:
        return text, False
    return encoded[:max_bytes].decode("utf-8", errors="ignore"), True


class ContentExtractor:
    """Extension point for document text extraction."""

    async def extract(self, ref: DocumentRef) -> ExtractedText:
        """
        Return the text of a document.

        Empty or garbled content is a successful result with empty text.
        Connectivity and format failures raise ExtractionError.
        """
        raise NotImplementedError


class DocumentExtractor(ContentExtractor):
    """Extract text from PDFs, HTML and plain text behind any DocumentRef."""

    def __init__(self, policy: Optional[ExtractionPolicy] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.policy = policy or ExtractionPolicy()
        self.client = client

    async def extract(self, ref: DocumentRef) -> ExtractedText:
        data, media_type = await self._load_bytes(ref)
        LOG.debug("Loaded %d bytes (%s) from %s", len(data), media_type, ref.describe())

        # PDF and HTML parsing run in a worker thread
        if media_type == "application/pdf" or data[:5] == b"%PDF-":
            text, page_count = await asyncio.to_thread(self._pdf_text, data)
            media_type = "application/pdf"
        elif media_type == "text/html" or _looks_like_html(data):
            text = await asyncio.to_thread(html_to_text, data.decode("utf-8", errors="ignore"))
            page_count = None
            media_type = "text/html"
        else:
            text, page_count = data.decode("utf-8", errors="ignore"), None

        text, truncated = clamp_text(text, self.policy.max_text_bytes)
        if truncated:
            LOG.info("Extracted text from %s truncated to %d bytes", ref.describe(), self.policy.max_text_bytes)
        return ExtractedText(
            text=text,
            source=ref.describe(),
            media_type=media_type,
            page_count=page_count,
            truncated=truncated,
        )

    async def _load_bytes(self, ref: DocumentRef) -> Tuple[bytes, Optional[str]]:
        if isinstance(ref, RemoteDocument):
            return await self._download(ref.url)
        if isinstance(ref, LocalDocument):
            path = Path(ref.path)
            try:
                data = await asyncio.to_thread(path.read_bytes)
            except (OSError, ValueError) as e:
                raise ExtractionError(f"Could not read {path}: {e}") from e
            return data, _media_type_for_suffix(path.suffix)
        if isinstance(ref, InlineDocument):
            try:
                return base64.b64decode(ref.data, validate=True), ref.media_type
            except (binascii.Error, ValueError) as e:
                raise ExtractionError(f"Invalid base64 payload: {e}") from e
        raise ExtractionError(f"Unsupported document reference: {ref!r}")

    async def _download(self, url: str) -> Tuple[bytes, Optional[str]]:
        try:
            if self.client is not None:
                return await self._stream_body(self.client, url)
            async with httpx.AsyncClient(follow_redirects=True) as client:
                return await self._stream_body(client, url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ExtractionError(f"Could not download {url}: {e}") from e

    async def _stream_body(self, client: httpx.AsyncClient, url: str) -> Tuple[bytes, Optional[str]]:
        """Read a response body, giving up once it passes max_download_bytes."""
        limit = self.policy.max_download_bytes
        chunks = []
        size = 0
        async with client.stream("GET", url, timeout=self.policy.download_timeout) as response:
            response.raise_for_status()
            async for chunk in response.aiter_bytes():
                size += len(chunk)
                if size > limit:
                    raise ExtractionError(f"Document at {url} is larger than {limit} bytes")
                chunks.append(chunk)
            content_type = response.headers.get("content-type", "")

        media_type = content_type.split(";")[0].strip().lower() or None
        return b"".join(chunks), media_type

    def _pdf_text(self, data: bytes) -> Tuple[str, int]:
        try:
            import fitz  # type: ignore

            doc = fitz.open(stream=data, filetype="pdf")
            if doc.page_count == 0:
                raise ValueError("document has no pages")
            page_texts = []
            for page_idx in range(min(self.policy.max_pdf_pages, doc.page_count)):
                page = doc.load_page(page_idx)
                page_texts.append(page.get_text("text"))
            page_count = doc.page_count
            doc.close()
        except Exception as exc:  # pylint: disable=broad-except
            raise ExtractionError(f"Could not read PDF: {exc}") from exc
        return "\n\n".join(t.strip() for t in page_texts if t.strip()), page_count


def _media_type_for_suffix(suffix: str) -> Optional[str]:
    return {
        '.pdf': 'application/pdf',
        '.html': 'text/html',
        '.htm': 'text/html',
        '.txt': 'text/plain',
        '.md': 'text/markdown',
    }.get(suffix.lower())


def _looks_like_html(data: bytes) -> bool:
    head = data[:512].lstrip().lower()
    return head.startswith((b"<!doctype html", b"<html"))
