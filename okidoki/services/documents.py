"""
Markdown document file operations.
"""

import logging
from typing import Dict, List

from okidoki import config
from okidoki.config import log_event, get_document_path, slugify_document
from okidoki.exceptions import DocumentNotFoundError


def initial_content(title: str) -> str:
    """Generate initial content for a new document."""
    return f"# {title}\n\n"


def ensure_document_file(document_id: str, title: str = None):
    """Create the document file if it doesn't exist and return its path."""
    path = get_document_path(document_id)
    if not path.exists():
        path.write_text(initial_content(title or document_id), encoding='utf-8')
        log_event(logging.INFO, "document_created", document=document_id, path=str(path))
    return path


def document_exists(document_id: str) -> bool:
    return get_document_path(document_id).exists()


def read_document(document_id: str) -> str:
    """Read the current content of a document."""
    path = get_document_path(document_id)
    if not path.exists():
        raise DocumentNotFoundError(f"Document '{document_id}' not found")
    content = path.read_text(encoding='utf-8')
    log_event(logging.DEBUG, "document_read", document=document_id, bytes=len(content))
    return content


def write_document(document_id: str, content: str) -> bool:
    """Write a document's markdown. Returns True on success."""
    try:
        path = get_document_path(document_id)
        path.write_text(content, encoding='utf-8')
        log_event(logging.INFO, "document_written", document=document_id, bytes=len(content))
        return True
    except OSError as e:
        log_event(logging.ERROR, "document_write_failed", document=document_id, error=str(e))
        return False


def delete_document(document_id: str) -> bool:
    """Remove a document. Returns False when it did not exist."""
    path = get_document_path(document_id)
    if not path.exists():
        return False
    path.unlink()
    log_event(logging.INFO, "document_deleted", document=document_id)
    return True


def list_documents() -> List[Dict]:
    """List stored documents with their title (first heading) and size."""
    documents = []
    for path in sorted(config.DOCUMENTS_DIR.glob("*.md")):
        content = path.read_text(encoding='utf-8')
        title = path.stem
        for line in content.splitlines():
            if line.startswith('# '):
                title = line[2:].strip()
                break
        documents.append({
            "id": path.stem,
            "title": title,
            "bytes": len(content),
        })
    log_event(logging.DEBUG, "documents_listed", count=len(documents))
    return documents


def document_filename(document_id: str) -> str:
    return f"{slugify_document(document_id)}.md"
