"""Project state and the JSON shapes it is saved as."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Sequence

from veritas.models.report import AnalysisReport, ChatMessage, Fact
from veritas.models.segment import EvidenceFile, ProcessedContent

PROJECT_FILE_TYPE = "project_v2"
DATABASE_FILE_TYPE = "database_v2"


@dataclass
class ProjectState:
    """Everything a case holds: evidence files, facts, processed evidence, reports and chat.

    Processed content is keyed by file id and replaced wholesale when a file
    is reprocessed. Reports form an append-only history; only explicit
    deletion removes one.
    """

    facts: list[Fact] = field(default_factory=list)
    processed: dict[str, ProcessedContent] = field(default_factory=dict)
    reports: list[AnalysisReport] = field(default_factory=list)
    chat_history: list[ChatMessage] = field(default_factory=list)
    files: dict[str, EvidenceFile] = field(default_factory=dict)

    # -- Evidence --

    def register_file(self, evidence: EvidenceFile) -> EvidenceFile:
        """Add an evidence file, or give its content to a matching virtual file.

        A virtual file with the same name and category (restored from a
        database export) keeps its id, so processed data and citations
        already pointing at it stay valid.
        """
        for existing in self.files.values():
            if (
                existing.is_virtual
                and existing.name == evidence.name
                and existing.category is evidence.category
            ):
                existing.content = evidence.content
                existing.mime_type = evidence.mime_type
                existing.kind = evidence.kind
                return existing
        self.files[evidence.id] = evidence
        return evidence

    def store_processed(self, content: ProcessedContent) -> None:
        self.processed[content.file_id] = content

    def corpus(self) -> list[ProcessedContent]:
        return list(self.processed.values())

    def evidence_files(self) -> list[EvidenceFile]:
        return list(self.files.values())

    # -- Reports --

    def add_report(self, report: AnalysisReport) -> None:
        self.reports.append(report)

    def get_report(self, report_id: str) -> AnalysisReport | None:
        return next((r for r in self.reports if r.id == report_id), None)

    def rename_report(self, report_id: str, name: str) -> AnalysisReport:
        report = self.get_report(report_id)
        if report is None:
            raise KeyError(report_id)
        report.name = name
        return report

    def delete_report(self, report_id: str) -> None:
        if self.get_report(report_id) is None:
            raise KeyError(report_id)
        self.reports = [r for r in self.reports if r.id != report_id]

    # -- Serialization --

    def to_project_dict(self) -> dict:
        return {
            "type": PROJECT_FILE_TYPE,
            "facts": [f.to_dict() for f in self.facts],
            "savedReports": [r.to_dict() for r in self.reports],
            "chatHistory": [m.to_dict() for m in self.chat_history],
            "createdAt": int(time.time() * 1000),
        }

    def to_database_dict(self, files: Sequence[EvidenceFile] | None = None) -> dict:
        if files is None:
            files = self.evidence_files()
        return {
            "type": DATABASE_FILE_TYPE,
            "processedData": [c.to_dict() for c in self.processed.values()],
            "fileManifest": [f.manifest() for f in files],
            "exportedAt": int(time.time() * 1000),
        }

    def load(self, payload: dict) -> str:
        """Merge a saved project or database file into this state.

        Manifest entries of a database file come back as virtual files;
        ids already known are left alone. Returns the file type that was
        loaded.

        Raises:
            ValueError: if the payload is neither kind of file.
        """
        kind = payload.get("type") if isinstance(payload, dict) else None
        if kind == PROJECT_FILE_TYPE:
            self.facts = [Fact.from_dict(f) for f in payload.get("facts", [])]
            self.reports = [AnalysisReport.from_dict(r) for r in payload.get("savedReports", [])]
            self.chat_history = [ChatMessage.from_dict(m) for m in payload.get("chatHistory", [])]
        elif kind == DATABASE_FILE_TYPE:
            for item in payload.get("processedData", []):
                self.store_processed(ProcessedContent.from_dict(item))
            for entry in payload.get("fileManifest", []):
                restored = EvidenceFile.from_manifest(entry)
                self.files.setdefault(restored.id, restored)
        else:
            raise ValueError(f"Unrecognized project file type: {kind!r}")
        return kind
