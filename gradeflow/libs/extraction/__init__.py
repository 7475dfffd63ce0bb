"""Document text extraction package."""

from .extractor import (
    ContentExtractor,
    DocumentExtractor,
    clean_html,
    html_to_text,
    parse_document_ref,
    policy_from_config,
)
from .models import (
    DocumentRef,
    ExtractedText,
    ExtractionError,
    ExtractionPolicy,
    InlineDocument,
    LocalDocument,
    RemoteDocument,
)

__all__ = [
    "ContentExtractor",
    "DocumentExtractor",
    "clean_html",
    "html_to_text",
    "parse_document_ref",
    "policy_from_config",
    "DocumentRef",
    "ExtractedText",
    "ExtractionError",
    "ExtractionPolicy",
    "InlineDocument",
    "LocalDocument",
    "RemoteDocument",
]
