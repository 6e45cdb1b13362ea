"""
Error taxonomy for OkiDoki.

Every error that can reach a client carries a machine-readable ``kind`` so
callers can tell a missing span apart from a failed generation.
"""

from typing import Dict, Tuple


class OkiDokiError(Exception):
    """Base class for errors surfaced to the user."""
    kind = "error"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message())
        self.message = message or self.default_message()

    @classmethod
    def default_message(cls) -> str:
        return "Something went wrong"

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.message, "kind": self.kind}


class SelectionCaptureError(OkiDokiError):
    """Range inspection failed. Absorbed by the tracker, never shown."""
    kind = "selection_capture"
    status_code = 400

    @classmethod
    def default_message(cls) -> str:
        return "Could not read the current selection"


class SpanNotFoundError(OkiDokiError):
    """The selected text could not be re-located in the current document."""
    kind = "span_not_found"
    status_code = 409

    @classmethod
    def default_message(cls) -> str:
        return "Selected text not found in the document"


class GenerationError(OkiDokiError):
    """The AI collaborator failed or returned no usable text."""
    kind = "generation_failed"
    status_code = 502

    @classmethod
    def default_message(cls) -> str:
        return "Failed to improve text"


class GenerationCancelled(GenerationError):
    """The user declined while the suggestion was still streaming."""
    kind = "cancelled"
    status_code = 409

    @classmethod
    def default_message(cls) -> str:
        return "Improvement cancelled"


class FormatReconciliationAmbiguity(OkiDokiError):
    """An opened formatting marker is never closed after the selection.

    Raised and handled inside the patch engine, which falls back to a plain
    replace.
    """
    kind = "format_ambiguous"
    status_code = 500

    @classmethod
    def default_message(cls) -> str:
        return "Formatting marker is never closed"


class ValidationError(OkiDokiError):
    """Request payload failed validation."""
    kind = "validation"
    status_code = 400

    @classmethod
    def default_message(cls) -> str:
        return "Invalid request"


class ImprovementStateError(OkiDokiError):
    """Operation not allowed in the current improvement state."""
    kind = "invalid_state"
    status_code = 409

    @classmethod
    def default_message(cls) -> str:
        return "An improvement is already in progress"


class DocumentNotFoundError(OkiDokiError):
    """No document stored under the requested id."""
    kind = "document_not_found"
    status_code = 404

    @classmethod
    def default_message(cls) -> str:
        return "Document not found"


def handle_error(error: OkiDokiError) -> Tuple[Dict[str, str], int]:
    """Convert an OkiDokiError into a JSON body and status code."""
    return error.to_dict(), error.status_code
