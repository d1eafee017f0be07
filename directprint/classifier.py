"""File type classification by extension."""

from enum import Enum
from pathlib import PurePath


class DocumentKind(str, Enum):
    """What the pipeline has to do with an incoming file."""

    PDF = "pdf"
    DOCUMENT = "document"
    IMAGE = "image"
    UNKNOWN = "unknown"


DOCUMENT_EXTENSIONS = frozenset({".doc", ".docx", ".rtf", ".odt", ".txt", ".md"})
IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg"})


def classify(filename: str) -> DocumentKind:
    """Classify a filename by its extension (case-insensitive).

    No content sniffing is done; a misnamed file is classified by its name.

    Args:
        filename: File name or path.

    Returns:
        DocumentKind: The detected kind, UNKNOWN for anything unsupported.
    """
    ext = PurePath(filename).suffix.lower()
    if ext == ".pdf":
        return DocumentKind.PDF
    if ext in DOCUMENT_EXTENSIONS:
        return DocumentKind.DOCUMENT
    if ext in IMAGE_EXTENSIONS:
        return DocumentKind.IMAGE
    return DocumentKind.UNKNOWN
