"""Text extraction from uploaded document files."""

import logging
from pathlib import Path
from typing import List, Union

from langchain_community.document_loaders import PyMuPDFLoader, TextLoader
from langchain_core.documents import Document as LCDocument

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".md", ".csv", ".tsv", ".json", ".log"}


def is_text_extractable(filename: str, content_type: str = "") -> bool:
    """Whether the indexer can get plain text out of this file."""
    suffix = Path(filename).suffix.lower()
    return (
        suffix == ".pdf"
        or suffix in TEXT_SUFFIXES
        or content_type.startswith("text/")
    )


def load_document_text(
    path: Union[str, Path],
    *,
    autodetect_encoding: bool = True,
) -> str:
    """
    Extract the text of a single file.

    PDFs are read page by page with PyMuPDF; anything else is read as
    text. Pages are joined with blank lines.

    Raises:
        FileNotFoundError: if ``path`` does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    if path.suffix.lower() == ".pdf":
        docs: List[LCDocument] = PyMuPDFLoader(str(path)).load()
    else:
        docs = TextLoader(str(path), autodetect_encoding=autodetect_encoding).load()

    pages = [(d.page_content or "").strip() for d in docs]
    text = "\n\n".join(p for p in pages if p)
    logger.debug("Extracted %d characters from %s (%d pages)", len(text), path, len(docs))
    return text
