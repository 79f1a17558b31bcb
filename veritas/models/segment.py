"""Evidence and transcript segment data models."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class EvidenceKind(Enum):
    AUDIO = "AUDIO"
    PDF = "PDF"
    IMAGE = "IMAGE"
    TEXT = "TEXT"


class EvidenceCategory(Enum):
    TESTIMONY = "TESTIMONY"
    INQUIRY = "INQUIRY"
    OTHER = "OTHER"


@dataclass
class EvidenceFile:
    """An audio recording or document submitted for processing.

    ``content`` is None for virtual files restored from a saved project,
    which can be cited but not reprocessed.
    """

    id: str
    name: str
    kind: EvidenceKind
    category: EvidenceCategory = EvidenceCategory.OTHER
    mime_type: str = ""
    content: bytes | None = None

    @property
    def is_virtual(self) -> bool:
        return self.content is None

    def manifest(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.kind.value,
            "category": self.category.value,
        }

    @classmethod
    def from_manifest(cls, data: dict) -> EvidenceFile:
        """Restore a manifest entry as a virtual file, without content."""
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            kind=EvidenceKind(data.get("type", EvidenceKind.TEXT.value)),
            category=EvidenceCategory(data.get("category", EvidenceCategory.OTHER.value)),
        )


@dataclass(frozen=True)
class Segment:
    """One timestamped or paginated unit of transcribed text."""

    timestamp: str
    seconds: int
    text: str

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "seconds": self.seconds, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict) -> Segment:
        return cls(
            timestamp=str(data["timestamp"]),
            seconds=int(data.get("seconds", 0)),
            text=str(data.get("text", "")),
        )


@dataclass(frozen=True)
class ProcessedContent:
    """The sanitized transcription or extraction of one evidence file."""

    file_id: str
    file_name: str
    segments: tuple[Segment, ...] = ()
    processed_at: int = field(default_factory=lambda: int(time.time() * 1000))

    @property
    def full_text(self) -> str:
        return "\n".join(f"[{s.timestamp}] {s.text}" for s in self.segments)

    def to_dict(self) -> dict:
        return {
            "fileId": self.file_id,
            "fileName": self.file_name,
            "fullText": self.full_text,
            "segments": [s.to_dict() for s in self.segments],
            "processedAt": self.processed_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ProcessedContent:
        return cls(
            file_id=str(data["fileId"]),
            file_name=str(data["fileName"]),
            segments=tuple(Segment.from_dict(s) for s in data.get("segments", [])),
            processed_at=int(data.get("processedAt", 0)),
        )


def segment_at(segments: list[Segment] | tuple[Segment, ...], seconds: float) -> int:
    """Index of the segment playing at ``seconds``, or -1 before the first one."""
    for idx, seg in enumerate(segments):
        next_seg = segments[idx + 1] if idx + 1 < len(segments) else None
        if seconds >= seg.seconds and (next_seg is None or seconds < next_seg.seconds):
            return idx
    return -1


def search_segments(segments: list[Segment] | tuple[Segment, ...], query: str) -> list[int]:
    """Indices of segments containing ``query``, case-insensitively."""
    needle = query.strip().lower()
    if not needle:
        return []
    return [idx for idx, seg in enumerate(segments) if needle in seg.text.lower()]
