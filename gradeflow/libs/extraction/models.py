"""Document references and extraction results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class ExtractionError(Exception):
    """A document could not be fetched or decoded."""


class RemoteDocument(BaseModel):
    """Document reachable over HTTP(S)."""
    kind: Literal["url"] = "url"
    url: str = Field(description="http:// or https:// location of the document")

    def describe(self) -> str:
        return self.url


class LocalDocument(BaseModel):
    """Document on the local filesystem."""
    kind: Literal["path"] = "path"
    path: str = Field(description="Filesystem path of the document")

    def describe(self) -> str:
        return self.path


class InlineDocument(BaseModel):
    """Document carried inline as a base64 payload."""
    kind: Literal["inline"] = "inline"
    data: str = Field(description="Base64 encoded document bytes")
    media_type: str = Field(default="application/pdf", description="MIME type of the payload")

    def describe(self) -> str:
        return f"inline {self.media_type} ({len(self.data)} base64 chars)"


DocumentRef = Annotated[
    Union[RemoteDocument, LocalDocument, InlineDocument],
    Field(discriminator="kind"),
]


@dataclass(frozen=True)
class ExtractionPolicy:
    """Caps that keep extraction bounded."""

    max_pdf_pages: int = 20
    max_text_bytes: int = 60_000
    download_timeout: float = 30.0
    max_download_bytes: int = 20_000_000


@dataclass
class ExtractedText:
    """Best-effort text recovered from a document. Empty text is still a success."""

    text: str
    source: str
    media_type: str = "text/plain"
    page_count: Optional[int] = None
    truncated: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()
