"""
Bracket placeholder rendering for notification titles and bodies.

``[Name]`` tokens are replaced with values supplied by the caller. Tokens with no
value stay in the text verbatim and are reported back so an editor can flag them.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Mapping
import logging
import re

logger = logging.getLogger('notifications.rendering')

PLACEHOLDER_NAME = re.compile(r'[A-Za-z0-9_]+')
PLACEHOLDER_TOKEN = re.compile(r'\[([A-Za-z0-9_]+)\]')


@dataclass(frozen=True)
class RenderResult:
    text: str
    unresolved: FrozenSet[str]


def render(pattern: str, values: Mapping[str, object]) -> RenderResult:
    """
    Substitute every ``[Token]`` whose name is in ``values``.

    Values are inserted verbatim and are not re-scanned, so a value that itself
    looks like a placeholder is left alone.
    """
    unresolved = set()

    def substitute(match):
        name = match.group(1)
        if name in values and values[name] is not None:
            return str(values[name])
        unresolved.add(name)
        return match.group(0)

    text = PLACEHOLDER_TOKEN.sub(substitute, pattern or '')
    if unresolved:
        logger.debug(f"Unresolved placeholders left in text: {sorted(unresolved)}")
    return RenderResult(text=text, unresolved=frozenset(unresolved))


def find_placeholders(pattern: str) -> List[str]:
    """Placeholder names in order of first appearance"""
    seen = []
    for match in PLACEHOLDER_TOKEN.finditer(pattern or ''):
        if match.group(1) not in seen:
            seen.append(match.group(1))
    return seen


def highlight_segments(text: str) -> List[Dict[str, object]]:
    """
    Split text into plain and placeholder segments for the admin preview.

    >>> highlight_segments('Hi [Name]!')
    [{'text': 'Hi ', 'placeholder': False}, {'text': '[Name]', 'placeholder': True}, {'text': '!', 'placeholder': False}]
    """
    segments = []
    position = 0
    for match in PLACEHOLDER_TOKEN.finditer(text or ''):
        if match.start() > position:
            segments.append({'text': text[position:match.start()], 'placeholder': False})
        segments.append({'text': match.group(0), 'placeholder': True})
        position = match.end()
    if position < len(text or ''):
        segments.append({'text': text[position:], 'placeholder': False})
    return segments
