"""Transcript sanitizer — raw model output to an ordered list of segments.

The evidence processor asks the model for one utterance (audio) or one page
block (documents) per line, each introduced by a marker such as ``[01:15]``,
``[01:02:03]`` or ``[Pág 2]``. Models follow that contract loosely: several
utterances end up on one physical line, markers get wrapped in bold or
parentheses, subtitle credits are invented, and words loop. The sanitizer
repairs the structure; it does not judge the content.

Line classification is a fold over the normalized lines carrying the segment
currently open for continuation:

* a line with a marker closes the open segment and opens a new one (unless
  it is boilerplate, a duplicate, or rejected by the time policy);
* a line without a marker is appended to the open segment, if any.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from veritas.config import settings
from veritas.models.segment import EvidenceKind, ProcessedContent, Segment
from veritas.text.loops import clean_repetitive_loops
from veritas.text.timestamps import format_clock, format_page

logger = logging.getLogger(__name__)

# Substrings that only ever show up in hallucinated lines.
HALLUCINATION_MARKERS = ("subtitles by", "legendas por", "inaudível")

# Characters that may wrap a marker: **[00:01]**, (00:01), - 00:01
_DECORATION = "*-_(["

# Marker that may start a new utterance in the middle of a physical line.
_INLINE_MARKER_RE = re.compile(
    r"\[\d{1,2}:\d{2}(?::\d{2})?\]"
    r"|(?<=\s)\d{1,2}:\d{2}:\d{2}\b"
    r"|\[P[áa]g",
    re.IGNORECASE,
)

# Groups: 1=hours (optional), 2=minutes, 3=seconds, 4=page, 5=page (English), 6=text
_LINE_MARKER_RE = re.compile(
    r"^[\s*\-.(\[]*"
    r"(?:(?:(\d{1,2}):)?(\d{1,2}):(\d{2})|P[áa]g\.?\s*(\d+)|Page\s*(\d+))"
    r"(?:\]|\)|:)?[*\-):]*\s*(.*)$",
    re.IGNORECASE,
)

_FENCE_RE = re.compile(r"^```[a-z]*\s*$", re.IGNORECASE | re.MULTILINE)
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")


class TimePolicy(Enum):
    """What to do with a marker that jumps back before the previous one."""

    LENIENT = "lenient"
    SKIP = "skip"
    TRUNCATE = "truncate"


@dataclass
class _OpenSegment:
    timestamp: str
    seconds: int
    parts: list[str] = field(default_factory=list)

    def freeze(self) -> Segment:
        return Segment(timestamp=self.timestamp, seconds=self.seconds, text=" ".join(self.parts))


@dataclass
class _FoldState:
    segments: list[_OpenSegment] = field(default_factory=list)
    last_text: str = ""
    # False while continuation lines belong to a rejected marker line.
    accepting: bool = True
    done: bool = False

    @property
    def current(self) -> _OpenSegment | None:
        return self.segments[-1] if self.segments else None


def strip_code_fences(raw_text: str) -> str:
    """Drop Markdown fence lines the model wraps its answer in."""
    return _FENCE_RE.sub("", raw_text)


def split_marker_lines(raw_text: str) -> list[str]:
    """Put every timestamp/page marker at the start of its own line.

    Decoration right before an inline marker (``**[00:02]**``) moves with it.
    Blank lines are dropped.
    """
    lines: list[str] = []
    for physical in raw_text.splitlines():
        start = 0
        for match in _INLINE_MARKER_RE.finditer(physical):
            cut = match.start()
            while cut > start and physical[cut - 1] in _DECORATION:
                cut -= 1
            if physical[start:cut].strip(" \t" + _DECORATION):
                lines.append(physical[start:cut].rstrip())
                start = cut
        lines.append(physical[start:])
    return [line for line in lines if line.strip()]


def _parse_marker(line: str) -> tuple[str, int, str] | None:
    match = _LINE_MARKER_RE.match(line)
    if not match:
        return None
    hours, minutes, secs, page, page_en, text = match.groups()
    if minutes is not None:
        h, m, s = int(hours or 0), int(minutes), int(secs)
        return format_clock(h, m, s), h * 3600 + m * 60 + s, text.strip()
    number = int(page or page_en)
    return format_page(number), number, text.strip()


def _is_hallucination(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in HALLUCINATION_MARKERS)


class TranscriptSanitizer:
    """Turns one blob of raw model text into ordered ``Segment`` records."""

    def __init__(self, time_policy: TimePolicy | str | None = None) -> None:
        self.time_policy = TimePolicy(time_policy or settings.time_policy)

    def sanitize(self, raw_text: str) -> list[Segment]:
        """Parse ``raw_text`` into segments; never raises.

        Returns an empty list when no marker is recognized at all; the caller
        decides on a fallback (see :func:`fallback_segments`).
        """
        state = _FoldState()
        for line in split_marker_lines(raw_text or ""):
            if state.done:
                break
            if len(line.strip()) < 2:
                continue
            marker = _parse_marker(line)
            if marker is None:
                self._continue(state, line)
            else:
                self._open(state, *marker)
        return [seg.freeze() for seg in state.segments]

    def _open(self, state: _FoldState, timestamp: str, seconds: int, text: str) -> None:
        if _is_hallucination(text):
            logger.debug("Skipping boilerplate line at %s", timestamp)
            return

        text = clean_repetitive_loops(text)
        if not text or text == state.last_text:
            logger.debug("Skipping empty or repeated line at %s", timestamp)
            return

        current = state.current
        if current is not None and seconds < current.seconds:
            if self.time_policy is TimePolicy.TRUNCATE:
                logger.warning(
                    "Backward jump %s -> %s, truncating transcript", current.timestamp, timestamp
                )
                state.done = True
                return
            if self.time_policy is TimePolicy.SKIP:
                logger.warning("Backward jump %s -> %s, skipping line", current.timestamp, timestamp)
                state.accepting = False
                return

        state.segments.append(_OpenSegment(timestamp=timestamp, seconds=seconds, parts=[text]))
        state.last_text = text
        state.accepting = True

    def _continue(self, state: _FoldState, line: str) -> None:
        current = state.current
        if current is None or not state.accepting:
            return
        clean_line = clean_repetitive_loops(line.strip())
        if clean_line.startswith("[") or len(clean_line) <= 1:
            # Most likely a marker the patterns did not recognize.
            logger.debug("Dropping unmatched bracketed line: %.40s", clean_line)
            return
        current.parts.append(clean_line)


def sanitize_transcript(raw_text: str, time_policy: TimePolicy | str | None = None) -> list[Segment]:
    return TranscriptSanitizer(time_policy).sanitize(raw_text)


def fallback_segments(raw_text: str, kind: EvidenceKind) -> list[Segment]:
    """Paragraph split for text with no recognizable markers.

    Audio paragraphs all sit at ``00:00``; document paragraphs are labelled
    ``Parte N``. ``seconds`` is the paragraph ordinal.
    """
    paragraphs = [p.strip() for p in _PARAGRAPH_SPLIT_RE.split(raw_text) if p.strip()]
    segments = []
    for idx, paragraph in enumerate(paragraphs):
        label = "00:00" if kind is EvidenceKind.AUDIO else f"Parte {idx + 1}"
        segments.append(Segment(timestamp=label, seconds=idx, text=paragraph))
    return segments


def build_processed_content(
    file_id: str,
    file_name: str,
    raw_text: str,
    kind: EvidenceKind,
    sanitizer: TranscriptSanitizer | None = None,
) -> ProcessedContent:
    """Sanitize raw model output for one file, falling back to paragraphs."""
    sanitizer = sanitizer or TranscriptSanitizer()
    text = strip_code_fences(raw_text)
    segments = sanitizer.sanitize(text)
    if not segments and text.strip():
        logger.warning("No markers found in %s, splitting into paragraphs", file_name)
        segments = fallback_segments(text, kind)
    return ProcessedContent(file_id=file_id, file_name=file_name, segments=tuple(segments))
