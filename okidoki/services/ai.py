"""
AI operations: PRD generation and selection improvement through Gemini.
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

import google.generativeai as genai

from okidoki import config
from okidoki.config import log_event, GENERATION_TEMPERATURE, MAX_OUTPUT_TOKENS
from okidoki.exceptions import GenerationCancelled, GenerationError
from okidoki.models import (
    DocType,
    GenerationSettings,
    Hierarchy,
    PRDTemplate,
    QuickAction,
    Tone,
)

ChunkCallback = Callable[[str], None]


# --- PROMPTS ---

TONE_INSTRUCTIONS = {
    Tone.BALANCED: "Write in a balanced, professional manner. Be clear and informative without being overly verbose.",
    Tone.DETAILED: "Write in a detailed, thorough manner with comprehensive explanations for each section. "
                   "Include examples and edge cases where relevant.",
    Tone.CONCISE: "Write in a concise, direct manner. Be brief and to the point. Avoid unnecessary elaboration.",
    Tone.CREATIVE: "Write in a creative, exploratory manner. Feel free to suggest innovative approaches "
                   "and think outside the box.",
}

DOC_TYPE_INSTRUCTIONS = {
    DocType.SINGLE: "You are creating a single, comprehensive document. Keep all content in one cohesive PRD.",
    DocType.PROJECT: """You are creating a PROJECT with multiple related documents. Structure your response as a collection of interconnected documents:
- Start with a Project Overview document
- Create separate logical documents for major sections (e.g., Technical Spec, User Stories, Design Requirements)
- Use clear document boundaries with "---" separators
- Reference other documents where relevant""",
}

HIERARCHY_INSTRUCTIONS = {
    Hierarchy.ONE_LEVEL: "Use a flat, 1-level structure with main sections only (##). Keep it simple and easy to scan.",
    Hierarchy.TWO_LEVELS: """Use a 2-level document hierarchy:
- Level 1: Main sections (##)
- Level 2: Subsections (###)
Keep the structure relatively flat with clear main sections and their immediate subsections.""",
    Hierarchy.THREE_LEVELS: """Use a 3-level document hierarchy:
- Level 1: Major sections (##)
- Level 2: Subsections (###)
- Level 3: Detailed items (####)
- Use nested bullet points for additional detail""",
}

PLAIN_PROSE_INSTRUCTION = (
    "Return ONLY the rewritten text as plain prose. Do not use markdown formatting, "
    "headings, bullet points, quotes or any explanation."
)


def build_system_prompt(settings: GenerationSettings, template: Optional[PRDTemplate] = None) -> str:
    """Assemble the PRD agent system prompt for the given settings."""
    if template:
        template_block = f"""Using template: {template.name}
Sections to include: {", ".join(template.sections)}"""
    else:
        template_block = """No specific template selected - pick the most appropriate format for the request:
- Standard PRD for feature requirements
- Discovery Brief for research/exploration
- Experiment PRD for A/B tests or experiments
- RFC for technical proposals
- API Documentation for technical specs
- Competitive Analysis for market research"""

    return f"""You are the OkiDoki PRD Agent. Generate high-quality Product Requirements Documents
from short text, rough thoughts, or descriptions, in English only.

## Writing Style
{TONE_INSTRUCTIONS[settings.tone]}

## Document Type
{DOC_TYPE_INSTRUCTIONS[settings.doc_type]}

## Document Hierarchy
{HIERARCHY_INSTRUCTIONS[settings.hierarchy]}

## Template Configuration
{template_block}

## Anti-Hallucination Protocol
- Never fabricate facts. If information is missing, ask one targeted question.
- Do not infer persona details, metrics, or timelines without evidence.
- Keep outputs faithful to the user's input.

## Output Format
- Use clear markdown formatting appropriate for the hierarchy level selected
- Use bullet lists for requirements, acceptance criteria, risks, and open questions
- Provide a short Executive Summary upfront
- Each requirement has an ID (R-001), description, priority (P0/P1/P2), and acceptance criteria

Keep responses conversational but professional. Be concise and actionable."""


def build_quick_action_prompt(action: QuickAction, selected_text: str) -> str:
    return f"{action.prompt}\n\n{selected_text}\n\n{PLAIN_PROSE_INSTRUCTION}"


def build_custom_prompt(instruction: str, selected_text: str) -> str:
    return f"{instruction.strip()}\n\nText to improve:\n{selected_text}\n\n{PLAIN_PROSE_INSTRUCTION}"


# --- GEMINI OPERATIONS ---

def _to_gemini_contents(messages: List[Dict[str, str]]) -> List[Dict]:
    """Convert role/content messages to Gemini's user/model contents."""
    contents = []
    for message in messages:
        role = message.get("role", "user")
        content = message.get("content", "")
        if not content:
            continue
        contents.append({
            "role": "model" if role == "assistant" else "user",
            "parts": [content],
        })
    return contents


def _build_model(system_prompt: str):
    if not config.gemini_available:
        return None
    return genai.GenerativeModel(config.GEMINI_MODEL, system_instruction=system_prompt)


def stream_completion(
    messages: List[Dict[str, str]],
    settings: Optional[GenerationSettings] = None,
    template: Optional[PRDTemplate] = None,
    on_chunk: Optional[ChunkCallback] = None,
    cancel_event: Optional[threading.Event] = None,
    timeout: Optional[float] = None,
) -> str:
    """
    Stream a completion, calling ``on_chunk`` per text chunk.
    Returns the concatenated text; raises GenerationError on failure,
    cancellation or timeout.
    """
    settings = settings or GenerationSettings()
    contents = _to_gemini_contents(messages)
    if not contents:
        raise GenerationError("No messages to send")

    model = _build_model(build_system_prompt(settings, template))
    if model is None:
        log_event(logging.WARNING, "gemini_unavailable")
        raise GenerationError("AI model is not configured")

    started = time.monotonic()
    pieces = []
    log_event(logging.INFO, "gemini_request", messages=len(contents), tone=settings.tone.value,
              doc_type=settings.doc_type.value, hierarchy=settings.hierarchy.value,
              template=template.name if template else None)
    try:
        response = model.generate_content(
            contents,
            stream=True,
            generation_config={
                "temperature": GENERATION_TEMPERATURE,
                "max_output_tokens": MAX_OUTPUT_TOKENS,
            },
        )
        for chunk in response:
            if cancel_event is not None and cancel_event.is_set():
                raise GenerationCancelled()
            if timeout is not None and time.monotonic() - started > timeout:
                raise GenerationError(f"Generation timed out after {timeout:.0f}s")
            try:
                text = chunk.text
            except ValueError:
                # Chunk without text parts (e.g. safety metadata)
                continue
            if not text:
                continue
            pieces.append(text)
            if on_chunk:
                on_chunk(text)
    except GenerationError as e:
        log_event(logging.WARNING, "gemini_stream_aborted", reason=e.message)
        raise
    except Exception as e:
        log_event(logging.ERROR, "gemini_error", error=str(e))
        raise GenerationError(f"AI request failed: {e}") from e

    full_text = "".join(pieces)
    log_event(logging.INFO, "gemini_stream_complete", chunks=len(pieces), chars=len(full_text),
              seconds=round(time.monotonic() - started, 2))
    return full_text


def clean_code_fences(text: str) -> str:
    """Drop a markdown code fence wrapped around the whole response."""
    text = text.strip()
    if text.startswith("```markdown"):
        text = text[11:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()
