"""Citation resolver — bracketed ``[file @ time]`` references to evidence excerpts."""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from veritas.config import settings
from veritas.models.citation import Citation, CitationRef
from veritas.models.segment import EvidenceCategory, ProcessedContent, Segment
from veritas.text.loops import clean_repetitive_loops
from veritas.text.timestamps import looks_like_time, parse_position

logger = logging.getLogger(__name__)

UNAVAILABLE_TEXT = "Texto indisponível"
SUBSEQUENCE_MIN_LENGTH = 3

# [file.mp3 @ 01:00, 02:00]
CITATION_RE = re.compile(r"\[\s*([^\[\]@]*?)\s*@\s*([^\[\]]*?)\s*\]")
# [01:00, file.mp3]
_REVERSED_CITATION_RE = re.compile(r"\[\s*(\d+:\d{2}[^\[\],]*?)\s*,\s*([^\[\]]*?)\s*\]")
_FILE_REF_RE = re.compile(r"\[\s*([^\[\]@]*?)\s*@")


def _fold(value: str) -> str:
    """Lowercase and strip accents for name comparison."""
    decomposed = unicodedata.normalize("NFKD", value.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _is_subsequence(needle: str, haystack: str) -> bool:
    chars = iter(haystack)
    return all(ch in chars for ch in needle)


def match_file(file_ref: str, corpus: Iterable[ProcessedContent]) -> ProcessedContent | None:
    """Find the evidence file the model meant by ``file_ref``.

    Models echo shortened or altered file names, so names are compared
    loosely. Substring containment in either direction wins first; failing
    that, a reference whose characters appear in order in the file name
    (``dep1`` for ``deposito1.mp3``). The first match in corpus order wins.
    """
    ref = _fold(file_ref.strip())
    if not ref:
        return None
    candidates = list(corpus)
    for content in candidates:
        name = _fold(content.file_name)
        if ref in name or name in ref:
            return content
    compact_ref = ref.replace(" ", "")
    if len(compact_ref) < SUBSEQUENCE_MIN_LENGTH:
        return None
    for content in candidates:
        if _is_subsequence(compact_ref, _fold(content.file_name)):
            return content
    return None


def split_timestamps(group: str) -> list[str]:
    return [t.strip() for t in group.split(",") if t.strip()]


def excerpt_for_testimony(
    segments: Sequence[Segment], seconds: int, tolerance: int, before: int, after: int
) -> str | None:
    """Dialogue around the utterance at ``seconds``, or None if nothing is close."""
    center = next(
        (idx for idx, seg in enumerate(segments) if abs(seg.seconds - seconds) <= tolerance),
        None,
    )
    if center is None:
        return None
    start = max(0, center - before)
    end = min(len(segments), center + after)
    return " ".join(seg.text for seg in segments[start:end])


def excerpt_for_document(segments: Sequence[Segment], position: int) -> str | None:
    """Text of the single page block numerically closest to ``position``."""
    if not segments:
        return None
    closest = min(segments, key=lambda seg: abs(seg.seconds - position))
    return closest.text


def _cite(
    content: ProcessedContent,
    timestamp: str,
    is_document: bool,
    tolerance: int,
    before: int,
    after: int,
) -> Citation:
    seconds = parse_position(timestamp)
    if is_document:
        text = excerpt_for_document(content.segments, seconds)
    else:
        text = excerpt_for_testimony(content.segments, seconds, tolerance, before, after)
    if text is None:
        logger.debug("No segment near %s in %s", timestamp, content.file_name)
    return Citation(
        file_id=content.file_id,
        file_name=content.file_name,
        timestamp=timestamp,
        seconds=seconds,
        text=clean_repetitive_loops(text) if text else UNAVAILABLE_TEXT,
    )


def resolve_citation(
    file_ref: str,
    timestamp: str,
    corpus: Sequence[ProcessedContent],
    is_document: bool,
) -> Citation | None:
    """Resolve one reference against ``corpus``; None if no file matches."""
    content = match_file(file_ref, corpus)
    if content is None:
        logger.debug("No evidence file matches citation reference %r", file_ref)
        return None
    return _cite(
        content,
        timestamp,
        is_document,
        settings.citation_tolerance_seconds,
        settings.citation_context_before,
        settings.citation_context_after,
    )


class CitationResolver:
    """Resolves references against a fixed snapshot of the evidence corpus.

    ``categories`` maps file ids to their evidence category; testimony gets
    a context window of surrounding dialogue, every other category the
    single closest page block. Files missing from the map count as documents.
    """

    def __init__(
        self,
        corpus: Sequence[ProcessedContent],
        categories: Mapping[str, EvidenceCategory] | None = None,
        tolerance: int | None = None,
        before: int | None = None,
        after: int | None = None,
    ) -> None:
        self.corpus = tuple(corpus)
        self.categories = dict(categories or {})
        self.tolerance = settings.citation_tolerance_seconds if tolerance is None else tolerance
        self.before = settings.citation_context_before if before is None else before
        self.after = settings.citation_context_after if after is None else after

    def is_document(self, file_id: str) -> bool:
        return self.categories.get(file_id) is not EvidenceCategory.TESTIMONY

    def resolve(self, file_ref: str, timestamp: str) -> Citation | None:
        citations = self.resolve_many(file_ref, [timestamp])
        return citations[0] if citations else None

    def resolve_many(self, file_ref: str, timestamps: Sequence[str]) -> list[Citation]:
        """One citation per timestamp, all against the same resolved file."""
        content = match_file(file_ref, self.corpus)
        if content is None:
            logger.debug("No evidence file matches citation reference %r", file_ref)
            return []
        is_document = self.is_document(content.file_id)
        return [
            _cite(content, ts, is_document, self.tolerance, self.before, self.after)
            for ts in timestamps
        ]


def extract_references(text: str) -> list[CitationRef]:
    """Every bracketed citation in ``text``, in order of appearance.

    Both ``[file @ t1, t2]`` and the reversed ``[t, file]`` forms are
    recognized; entries that are not times or page references are dropped.
    """
    found: list[tuple[int, CitationRef]] = []
    for match in CITATION_RE.finditer(text):
        timestamps = tuple(ts for ts in split_timestamps(match.group(2)) if _has_digit(ts))
        if match.group(1).strip() and timestamps:
            found.append((match.start(), CitationRef(match.group(1).strip(), timestamps)))
    for match in _REVERSED_CITATION_RE.finditer(text):
        file_ref = match.group(2).strip()
        if "@" in match.group(0) or not file_ref or looks_like_time(file_ref):
            continue
        found.append((match.start(), CitationRef(file_ref, (match.group(1).strip(),))))
    found.sort(key=lambda item: item[0])
    return [ref for _, ref in found]


def _has_digit(value: str) -> bool:
    return any(ch.isdigit() for ch in value)


@dataclass
class ReferenceGroup:
    """Consecutive lines of a reply that cite the same file."""

    file_ref: str
    lines: list[str] = field(default_factory=list)

    @property
    def timestamps(self) -> list[str]:
        """Unique clock references cited by the group, in playback order."""
        labels: list[str] = []
        for line in self.lines:
            for ref in extract_references(line):
                for ts in ref.timestamps:
                    if looks_like_time(ts) and ts not in labels:
                        labels.append(ts)
        return sorted(labels, key=parse_position)


def group_reference_lines(text: str) -> list[ReferenceGroup | str]:
    """Split a reply into plain lines and groups of same-file citation lines."""
    blocks: list[ReferenceGroup | str] = []
    current: ReferenceGroup | None = None
    for line in text.split("\n"):
        match = _FILE_REF_RE.search(line)
        if match:
            file_ref = match.group(1).strip()
            if current is not None and current.file_ref.lower() == file_ref.lower():
                current.lines.append(line)
                continue
            current = ReferenceGroup(file_ref=file_ref, lines=[line])
            blocks.append(current)
            continue
        current = None
        if line.strip():
            blocks.append(line)
    return blocks
