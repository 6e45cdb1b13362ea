"""
Data structures (dataclasses) for OkiDoki.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from okidoki.exceptions import ValidationError


# --- SELECTION ---

@dataclass
class Rect:
    """Client rectangle of one visual line of a selection (DOMRect shaped)."""
    left: float
    top: float
    right: float
    bottom: float
    width: float = 0.0
    height: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rect":
        try:
            left = float(data.get("left", data.get("x", 0)))
            top = float(data.get("top", data.get("y", 0)))
            width = float(data.get("width", 0))
            height = float(data.get("height", 0))
            right = float(data.get("right", left + width))
            bottom = float(data.get("bottom", top + height))
        except (TypeError, ValueError, AttributeError) as e:
            raise ValidationError(f"Invalid rect: {data!r}") from e
        return cls(left=left, top=top, right=right, bottom=bottom,
                   width=width or right - left, height=height or bottom - top)


@dataclass
class Point:
    x: float
    y: float


@dataclass
class VisibleRange:
    """Character offsets into the rendered (visible) text, not the markdown."""
    start: int
    end: int


@dataclass
class SelectionSnapshot:
    """Application-owned copy of a text selection."""
    visible_text: str = ""
    visible_range: Optional[VisibleRange] = None
    anchor_position: Optional[Point] = None
    rects: List[Rect] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.visible_text

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# --- RESOLVER ---

@dataclass
class FormatBoundaryInfo:
    """Whether a raw offset sits inside an unclosed bold/italic span."""
    is_inside: bool = False
    marker: str = ""  # "**", "*" or ""
    start_pos: int = -1


@dataclass
class MatchResult:
    """Raw-source location of a visible selection."""
    index: int
    boundary: FormatBoundaryInfo = field(default_factory=FormatBoundaryInfo)

    @property
    def found(self) -> bool:
        return self.index >= 0

    @property
    def is_inside_formatting(self) -> bool:
        return self.boundary.is_inside

    @property
    def format_marker(self) -> str:
        return self.boundary.marker


# --- VERSIONS ---

@dataclass
class DocumentVersion:
    """One entry of a document's linear version history."""
    content: str
    timestamp: str


# --- GENERATION ---

class _ChoiceEnum(str, Enum):
    """String enum that rejects unknown values with a ValidationError."""

    @classmethod
    def parse(cls, value: Optional[str], default: "_ChoiceEnum") -> "_ChoiceEnum":
        if value is None or value == "":
            return default
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValidationError(f"Unknown {cls.__name__.lower()} '{value}' (expected one of: {allowed})")


class Tone(_ChoiceEnum):
    BALANCED = "balanced"
    DETAILED = "detailed"
    CONCISE = "concise"
    CREATIVE = "creative"


class DocType(_ChoiceEnum):
    SINGLE = "single"
    PROJECT = "project"


class Hierarchy(_ChoiceEnum):
    ONE_LEVEL = "1-level"
    TWO_LEVELS = "2-levels"
    THREE_LEVELS = "3-levels"


@dataclass
class GenerationSettings:
    tone: Tone = Tone.BALANCED
    doc_type: DocType = DocType.SINGLE
    hierarchy: Hierarchy = Hierarchy.ONE_LEVEL

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GenerationSettings":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValidationError("settings must be an object")
        return cls(
            tone=Tone.parse(data.get("tone"), Tone.BALANCED),
            doc_type=DocType.parse(data.get("docType", data.get("doc_type")), DocType.SINGLE),
            hierarchy=Hierarchy.parse(data.get("hierarchy"), Hierarchy.ONE_LEVEL),
        )


@dataclass
class PRDTemplate:
    """Template descriptor passed to the generation collaborator."""
    name: str
    sections: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["PRDTemplate"]:
        if not data:
            return None
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("template.name is required")
        sections = data.get("sections") or []
        if not isinstance(sections, list) or not all(isinstance(s, str) for s in sections):
            raise ValidationError("template.sections must be a list of strings")
        return cls(name=name, sections=sections)


class QuickAction(Enum):
    """One-click improvement instructions offered in the toolbar."""
    SHORTER = ("shorter", "Shorter",
               "Make this text shorter and more concise while preserving the key meaning:")
    LONGER = ("longer", "Longer",
              "Expand this text with more details, examples, and depth while maintaining clarity:")
    MORE_DETAILED = ("more_detailed", "More detailed",
                     "Add more specific details, data points, and concrete examples to this text:")
    RETHINK = ("rethink", "Rethink better",
               "Completely rethink and rewrite this text with a fresh perspective, "
               "improving clarity, structure, and impact:")

    def __init__(self, key: str, label: str, prompt: str):
        self.key = key
        self.label = label
        self.prompt = prompt

    @classmethod
    def parse(cls, value: str) -> "QuickAction":
        normalized = (value or "").strip().lower().replace(" ", "_")
        for action in cls:
            if normalized in (action.key, action.label.lower().replace(" ", "_")):
                return action
        allowed = ", ".join(a.key for a in cls)
        raise ValidationError(f"Unknown quick action '{value}' (expected one of: {allowed})")


class ImprovementState(str, Enum):
    IDLE = "idle"
    SELECTED = "selected"
    REQUESTING = "requesting"
    REVIEWING = "reviewing"
