"""Fact, citation and analysis report data models."""

from __future__ import annotations

import logging
import time
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

logger = logging.getLogger(__name__)


class FactStatus(Enum):
    CONFIRMED = "Confirmado"
    DENIED = "Desmentido"
    INCONCLUSIVE = "Inconclusivo/Contraditório"
    NOT_MENTIONED = "Não Mencionado"


# Folded (lowercase, unaccented) prefixes, checked in order.
_STATUS_PREFIXES = (
    ("nao mencionado", FactStatus.NOT_MENTIONED),
    ("not mentioned", FactStatus.NOT_MENTIONED),
    ("confirm", FactStatus.CONFIRMED),
    ("desmentido", FactStatus.DENIED),
    ("denied", FactStatus.DENIED),
    ("inconclus", FactStatus.INCONCLUSIVE),
    ("contradit", FactStatus.INCONCLUSIVE),
)


def parse_status(raw: str | None) -> FactStatus:
    """Map free status text to a ``FactStatus``, defaulting to inconclusive.

    Model replies and older saved projects carry the raw status text
    (``Inconclusivo``, ``**Confirmado**``), not only the canonical values.
    """
    if not raw:
        return FactStatus.INCONCLUSIVE
    decomposed = unicodedata.normalize("NFKD", raw.strip().lower())
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).strip("*{}[] ")
    for prefix, status in _STATUS_PREFIXES:
        if folded.startswith(prefix):
            return status
    logger.warning("Unrecognized fact status %r, using %s", raw.strip(), FactStatus.INCONCLUSIVE.value)
    return FactStatus.INCONCLUSIVE


@dataclass
class Fact:
    """A user-authored assertion to verify against the evidence."""

    id: str
    text: str

    def to_dict(self) -> dict:
        return {"id": self.id, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict) -> Fact:
        return cls(id=str(data["id"]), text=str(data.get("text", "")))


@dataclass(frozen=True)
class CitationRef:
    """A bracketed ``[file @ t1, t2]`` reference as written by the model."""

    file_ref: str
    timestamps: tuple[str, ...]


@dataclass(frozen=True)
class Citation:
    """A reference resolved to a concrete excerpt of one evidence file."""

    file_id: str
    file_name: str
    timestamp: str
    seconds: int
    text: str

    def to_dict(self) -> dict:
        return {
            "fileId": self.file_id,
            "fileName": self.file_name,
            "timestamp": self.timestamp,
            "seconds": self.seconds,
            "text": self.text,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Citation:
        return cls(
            file_id=str(data["fileId"]),
            file_name=str(data["fileName"]),
            timestamp=str(data["timestamp"]),
            seconds=int(data.get("seconds", 0)),
            text=str(data.get("text", "")),
        )


@dataclass
class FactAnalysis:
    """The verdict on one fact within an analysis run."""

    fact_id: str
    fact_text: str
    status: FactStatus
    summary: str
    citations: list[Citation] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "factId": self.fact_id,
            "factText": self.fact_text,
            "status": self.status.value,
            "summary": self.summary,
            "citations": [c.to_dict() for c in self.citations],
        }

    @classmethod
    def from_dict(cls, data: dict) -> FactAnalysis:
        return cls(
            fact_id=str(data["factId"]),
            fact_text=str(data.get("factText", "")),
            status=parse_status(data.get("status")),
            summary=str(data.get("summary", "")),
            citations=[Citation.from_dict(c) for c in data.get("citations", [])],
        )


def _report_id() -> str:
    return str(int(time.time() * 1000))


def _report_name() -> str:
    return f"Relatório #{str(int(time.time()))[-4:]}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class AnalysisReport:
    """One fact-verification run over the evidence corpus."""

    general_conclusion: str
    results: list[FactAnalysis] = field(default_factory=list)
    id: str = field(default_factory=_report_id)
    name: str = field(default_factory=_report_name)
    generated_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "generatedAt": self.generated_at,
            "generalConclusion": self.general_conclusion,
            "results": [r.to_dict() for r in self.results],
        }

    @classmethod
    def from_dict(cls, data: dict) -> AnalysisReport:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            generated_at=str(data.get("generatedAt", "")),
            general_conclusion=str(data.get("generalConclusion", "")),
            results=[FactAnalysis.from_dict(r) for r in data.get("results", [])],
        )


@dataclass
class ChatMessage:
    role: str
    text: str
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))

    def to_dict(self) -> dict:
        return {"id": self.id, "role": self.role, "text": self.text, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict) -> ChatMessage:
        return cls(
            id=str(data["id"]),
            role=str(data["role"]),
            text=str(data.get("text", "")),
            timestamp=int(data.get("timestamp", 0)),
        )
