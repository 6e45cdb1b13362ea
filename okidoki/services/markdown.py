"""
Markdown text transforms.

``markdown_to_visible`` approximates the text a reader sees once the markdown
is rendered. It is lossy: nested or overlapping emphasis, backslash escapes and
tables are not reproduced exactly. Callers that map offsets between the two
representations score candidates instead of trusting it blindly.
"""

import re

_FENCE_RE = re.compile(r'^[ \t]{0,3}(?:```|~~~).*$', re.MULTILINE)
_RULE_RE = re.compile(r'^[ \t]{0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$', re.MULTILINE)
_IMAGE_RE = re.compile(r'!\[([^\]]*)\]\([^)]*\)')
_LINK_RE = re.compile(r'\[([^\]]*)\]\([^)]*\)')
_BLOCKQUOTE_RE = re.compile(r'^[ \t]{0,3}(?:>[ \t]?)+', re.MULTILINE)
_HEADING_RE = re.compile(r'^[ \t]{0,3}#{1,6}[ \t]+', re.MULTILINE)
_LIST_RE = re.compile(r'^[ \t]*(?:[-*+]|\d+[.)])[ \t]+', re.MULTILINE)

_INLINE_CODE_RE = re.compile(r'`([^`\n]*)`')
_BOLD_STAR_RE = re.compile(r'\*\*(.+?)\*\*')
_BOLD_UNDERSCORE_RE = re.compile(r'(?<!\w)__(.+?)__(?!\w)')
_STRIKE_RE = re.compile(r'~~(.+?)~~')
_ITALIC_STAR_RE = re.compile(r'\*([^*\n]+)\*')
_ITALIC_UNDERSCORE_RE = re.compile(r'(?<!\w)_([^_\n]+)_(?!\w)')

# Left over after pairing: markers whose partner lies outside the text.
_STRAY_MARKER_RE = re.compile(r'\*\*|~~|`')
_STRAY_OPEN_STAR_RE = re.compile(r'(?<![\w*])\*(?=[^\s*])')

_BLANK_LINES_RE = re.compile(r'\n{2,}')
_WHITESPACE_RE = re.compile(r'\s+')


def _strip_inline(text: str) -> str:
    text = _INLINE_CODE_RE.sub(r'\1', text)
    text = _BOLD_STAR_RE.sub(r'\1', text)
    text = _BOLD_UNDERSCORE_RE.sub(r'\1', text)
    text = _STRIKE_RE.sub(r'\1', text)
    text = _ITALIC_STAR_RE.sub(r'\1', text)
    text = _ITALIC_UNDERSCORE_RE.sub(r'\1', text)
    return text


def markdown_to_visible(markdown: str) -> str:
    """Approximate the rendered text of a markdown fragment."""
    text = markdown.replace('\r\n', '\n')
    text = _FENCE_RE.sub('', text)
    text = _RULE_RE.sub('', text)
    text = _IMAGE_RE.sub(r'\1', text)
    text = _LINK_RE.sub(r'\1', text)
    text = _BLOCKQUOTE_RE.sub('', text)
    text = _HEADING_RE.sub('', text)
    text = _LIST_RE.sub('', text)
    text = _strip_inline(text)
    text = _STRAY_MARKER_RE.sub('', text)
    text = _STRAY_OPEN_STAR_RE.sub('', text)
    # Rendered blocks are separated by a single newline
    return _BLANK_LINES_RE.sub('\n', text)


def visible_length(markdown: str) -> int:
    return len(markdown_to_visible(markdown))


def _strip_formatting_once(text: str) -> str:
    text = text.replace('\r\n', '\n')
    text = _HEADING_RE.sub('', text)
    text = _BLOCKQUOTE_RE.sub('', text)
    text = _LIST_RE.sub('', text)
    text = _strip_inline(text)
    text = _STRAY_MARKER_RE.sub('', text)
    return _WHITESPACE_RE.sub(' ', text).strip()


def strip_formatting(text: str) -> str:
    """
    Reduce AI output to plain prose.

    Removes headers, emphasis, inline code, strikethrough and leading
    list/blockquote markers, then collapses whitespace. Runs to a fixed point,
    so stripping twice gives the same result as stripping once.
    """
    previous = None
    while text != previous:
        previous, text = text, _strip_formatting_once(text)
    return text
