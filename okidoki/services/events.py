"""
Server-sent event broadcasting.
"""

import logging
from typing import Dict

from okidoki.config import log_event
from okidoki.state import CONNECTED_CLIENTS


def broadcast_event(document_id: str, data: Dict):
    """Broadcast an event to all connected SSE clients for a document."""
    for client_queue in CONNECTED_CLIENTS[document_id]:
        try:
            client_queue.put(data)
        except Exception as e:
            log_event(logging.DEBUG, "sse_client_send_failed", document=document_id, error=str(e))
    log_event(logging.DEBUG, "sse_broadcast", document=document_id, type=data.get("type"))


def chunk_broadcaster(document_id: str, event_type: str):
    """Return an on_chunk callback that forwards streamed text to SSE clients."""
    def _on_chunk(chunk: str):
        broadcast_event(document_id, {"type": event_type, "content": chunk})
    return _on_chunk
