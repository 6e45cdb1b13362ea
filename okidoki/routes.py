"""
Flask routes for the OkiDoki API.
"""

import json
import queue
import logging
import threading
from dataclasses import asdict

from flask import Blueprint, Response, request, jsonify, stream_with_context

from okidoki import config
from okidoki.config import log_event, slugify_document, resolve_document_title
from okidoki.exceptions import DocumentNotFoundError, OkiDokiError, ValidationError, handle_error
from okidoki.models import GenerationSettings, Point, PRDTemplate, QuickAction
from okidoki.state import CONNECTED_CLIENTS, SESSIONS
from okidoki.services.ai import stream_completion, clean_code_fences
from okidoki.services.documents import (
    initial_content,
    ensure_document_file,
    document_exists,
    document_filename,
    read_document,
    write_document,
    delete_document,
    list_documents,
)
from okidoki.services.events import broadcast_event, chunk_broadcaster
from okidoki.services.improvement import get_session, drop_session
from okidoki.services.selection import PointerTarget

# Create blueprint
api = Blueprint('api', __name__)

SSE_HEADERS = {
    'Cache-Control': 'no-cache',
    'Connection': 'keep-alive',
    'X-Accel-Buffering': 'no'
}


@api.errorhandler(OkiDokiError)
def handle_okidoki_error(error: OkiDokiError):
    body, status = handle_error(error)
    log_event(logging.INFO, "api_error", kind=error.kind, status=status, error=error.message)
    return jsonify(body), status


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object")
    return data


def _persist(document_id: str, content: str):
    if not write_document(document_id, content):
        raise OkiDokiError("Failed to write document")
    broadcast_event(document_id, {"type": "file_updated", "content": content})


# --- HEALTH ---

@api.route('/health')
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "ok",
        "gemini_available": config.gemini_available,
        "documents_dir": str(config.DOCUMENTS_DIR),
        "sessions": len(SESSIONS),
    })


# --- DOCUMENTS ---

@api.route('/api/documents', methods=['GET'])
def get_documents():
    return jsonify({"documents": list_documents()})


@api.route('/api/documents', methods=['POST'])
def create_document():
    data = _json_body()
    title = resolve_document_title(data.get('title'))
    document_id = slugify_document(data.get('id') or title)
    if document_exists(document_id):
        raise ValidationError(f"Document '{document_id}' already exists")

    ensure_document_file(document_id, title)
    content = data.get('content')
    if content:
        if not isinstance(content, str):
            raise ValidationError("content must be a string")
        write_document(document_id, content)
    log_event(logging.INFO, "api_document_created", document=document_id)
    return jsonify({"id": document_id, "content": read_document(document_id)}), 201


@api.route('/api/documents/<document_id>', methods=['GET'])
def get_document(document_id):
    document_id = slugify_document(document_id)
    return jsonify({"id": document_id, "content": read_document(document_id)})


@api.route('/api/documents/<document_id>', methods=['PUT'])
def save_document(document_id):
    document_id = slugify_document(document_id)
    read_document(document_id)
    content = _json_body().get('content')
    if not isinstance(content, str):
        raise ValidationError("content must be a string")

    _persist(document_id, content)
    if document_id in SESSIONS:
        get_session(document_id).observe_content(content)
    return jsonify({"id": document_id, "content": content})


@api.route('/api/documents/<document_id>', methods=['DELETE'])
def remove_document(document_id):
    document_id = slugify_document(document_id)
    if not delete_document(document_id):
        raise DocumentNotFoundError(f"Document '{document_id}' not found")
    drop_session(document_id)
    CONNECTED_CLIENTS.pop(document_id, None)
    return jsonify({"status": "deleted", "id": document_id})


@api.route('/api/documents/<document_id>/export')
def export_document(document_id):
    """Download a document as markdown."""
    document_id = slugify_document(document_id)
    content = read_document(document_id)
    return Response(
        content,
        mimetype="text/markdown",
        headers={"Content-Disposition": f"attachment; filename={document_filename(document_id)}"}
    )


# --- GENERATION ---

def _parse_messages(raw) -> list:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("messages must be a non-empty list")
    messages = []
    for item in raw:
        if not isinstance(item, dict):
            raise ValidationError("each message must be an object")
        role = item.get('role')
        content = item.get('content')
        if role not in ("user", "assistant"):
            raise ValidationError(f"Unknown message role '{role}'")
        if not isinstance(content, str):
            raise ValidationError("message content must be a string")
        messages.append({"role": role, "content": content})
    return messages


@api.route('/api/generate', methods=['POST'])
def generate_prd():
    """Stream a PRD as server-sent events, optionally saving it to a document."""
    data = _json_body()
    messages = _parse_messages(data.get('messages'))
    settings = GenerationSettings.from_dict(data.get('settings'))
    template = PRDTemplate.from_dict(data.get('template'))
    document_id = slugify_document(data['document_id']) if data.get('document_id') else None
    log_event(logging.INFO, "api_generate", messages=len(messages), document=document_id)

    events = queue.Queue()

    def worker():
        try:
            text = stream_completion(
                messages,
                settings=settings,
                template=template,
                on_chunk=lambda chunk: events.put({"type": "chunk", "content": chunk}),
            )
            text = clean_code_fences(text)
            if document_id:
                ensure_document_file(document_id)
                _persist(document_id, text)
                if document_id in SESSIONS:
                    get_session(document_id).observe_content(text)
            events.put({"type": "done", "content": text, "document_id": document_id})
        except OkiDokiError as e:
            events.put({"type": "error", **e.to_dict()})
        finally:
            events.put(None)

    threading.Thread(target=worker, daemon=True).start()

    def event_stream():
        while True:
            item = events.get()
            if item is None:
                yield "data: [DONE]\n\n"
                break
            yield f"data: {json.dumps(item)}\n\n"

    return Response(stream_with_context(event_stream()), mimetype="text/event-stream", headers=SSE_HEADERS)


# --- SELECTION ---

@api.route('/api/documents/<document_id>/selection', methods=['GET'])
def get_selection(document_id):
    session = get_session(slugify_document(document_id))
    return jsonify(session.to_dict())


@api.route('/api/documents/<document_id>/selection/events', methods=['POST'])
def selection_event(document_id):
    """
    Browser pointer/key events. The body may carry the current native
    selection as ``selection``: {text, rects, start, inContainer}.
    """
    session = get_session(slugify_document(document_id))
    data = _json_body()
    event_type = data.get('type')

    if 'selection' in data:
        session.source.report(data['selection'])

    tracker = session.tracker
    if event_type == 'pointerdown':
        try:
            target = PointerTarget(data.get('target', PointerTarget.CONTAINER.value))
        except ValueError:
            raise ValidationError(f"Unknown pointer target '{data.get('target')}'")
        tracker.on_document_pointer_down(target)
    elif event_type == 'pointerup':
        tracker.on_pointer_up()
    elif event_type == 'keyup':
        key = str(data.get('key') or '')
        if key == 'Escape':
            session.escape()
        else:
            tracker.on_key_up(key)
    elif event_type == 'scroll':
        position = data.get('position') or {}
        try:
            tracker.update_position(Point(x=float(position['x']), y=float(position['y'])))
        except (KeyError, TypeError, ValueError):
            raise ValidationError("scroll events need position {x, y}")
    elif event_type == 'capture':
        tracker.capture_selection()
    else:
        raise ValidationError(f"Unknown selection event '{event_type}'")

    return jsonify(session.to_dict())


@api.route('/api/documents/<document_id>/selection/clear', methods=['POST'])
def clear_selection(document_id):
    session = get_session(slugify_document(document_id))
    session.escape()
    return jsonify(session.to_dict())


# --- IMPROVEMENT ---

@api.route('/api/documents/<document_id>/improve', methods=['POST'])
def improve_selection(document_id):
    """Run a quick action (``action``) or custom instruction (``prompt``) on the selection."""
    document_id = slugify_document(document_id)
    session = get_session(document_id)
    data = _json_body()
    on_chunk = chunk_broadcaster(document_id, "improvement_chunk")

    if data.get('action'):
        action = QuickAction.parse(data['action'])
        log_event(logging.INFO, "api_improve", document=document_id, action=action.key)
        suggestion = session.request_quick_action(action, on_chunk=on_chunk)
    elif isinstance(data.get('prompt'), str) and data['prompt'].strip():
        log_event(logging.INFO, "api_improve", document=document_id, action="custom")
        suggestion = session.request_custom(data['prompt'], on_chunk=on_chunk)
    else:
        raise ValidationError("Provide a quick action or a prompt")

    broadcast_event(document_id, {"type": "improvement_ready", "suggestion": suggestion})
    return jsonify(session.to_dict())


@api.route('/api/documents/<document_id>/improve/accept', methods=['POST'])
def accept_improvement(document_id):
    document_id = slugify_document(document_id)
    session = get_session(document_id)
    version = session.accept()
    _persist(document_id, version.content)
    return jsonify({
        "status": "accepted",
        "content": version.content,
        "version": asdict(version),
        "history": session.to_dict()["history"],
    })


@api.route('/api/documents/<document_id>/improve/decline', methods=['POST'])
def decline_improvement(document_id):
    session = get_session(slugify_document(document_id))
    previous = session.decline()
    return jsonify({"status": "declined", "previous": previous.value})


# --- VERSIONS ---

@api.route('/api/documents/<document_id>/versions', methods=['GET'])
def get_versions(document_id):
    session = get_session(slugify_document(document_id))
    return jsonify(session.history.to_dict())


def _move_version(document_id: str, forward: bool):
    document_id = slugify_document(document_id)
    session = get_session(document_id)
    moved = session.roll_forward() if forward else session.rollback()
    if moved:
        _persist(document_id, session.content)
    return jsonify({
        "moved": moved,
        "content": session.content,
        "history": session.to_dict()["history"],
    })


@api.route('/api/documents/<document_id>/rollback', methods=['POST'])
def rollback_version(document_id):
    return _move_version(document_id, forward=False)


@api.route('/api/documents/<document_id>/rollforward', methods=['POST'])
def roll_forward_version(document_id):
    return _move_version(document_id, forward=True)


# --- STREAM ---

@api.route('/api/documents/<document_id>/stream')
def stream(document_id):
    """SSE endpoint for real-time updates."""
    document_id = slugify_document(document_id)
    client_queue = queue.Queue()
    CONNECTED_CLIENTS[document_id].append(client_queue)

    def event_stream():
        try:
            content = read_document(document_id)
        except OkiDokiError as e:
            log_event(logging.ERROR, "sse_init_error", document=document_id, error=str(e))
            content = initial_content(document_id)
        yield f"data: {json.dumps({'type': 'init', 'content': content, 'document_id': document_id})}\n\n"

        try:
            while True:
                try:
                    data = client_queue.get(timeout=2.0)
                    yield f"data: {json.dumps(data)}\n\n"
                except queue.Empty:
                    yield f"data: {json.dumps({'type': 'heartbeat'})}\n\n"
        except GeneratorExit:
            pass
        finally:
            if client_queue in CONNECTED_CLIENTS[document_id]:
                CONNECTED_CLIENTS[document_id].remove(client_queue)

    return Response(stream_with_context(event_stream()), mimetype="text/event-stream", headers=SSE_HEADERS)
