"""Veritas — FastAPI application entry point."""

from __future__ import annotations

import base64
import logging
from uuid import uuid4

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from veritas.backends.base import LLMBackend
from veritas.backends.gemini import GeminiBackend
from veritas.config import settings
from veritas.models.project import ProjectState
from veritas.models.report import AnalysisReport, ChatMessage, Fact
from veritas.models.segment import (
    EvidenceCategory,
    EvidenceFile,
    EvidenceKind,
    ProcessedContent,
    Segment,
    search_segments,
    segment_at,
)
from veritas.orchestrator.analyzer import FactAnalyzer
from veritas.orchestrator.chat import ChatReply, EvidenceChat, parse_chat_reply
from veritas.orchestrator.citations import CitationResolver, ReferenceGroup, group_reference_lines
from veritas.orchestrator.processor import EvidenceProcessor
from veritas.orchestrator.report_parser import ReportFormatError, parse_report
from veritas.text.sanitizer import build_processed_content

logger = logging.getLogger(__name__)

project = ProjectState()

app = FastAPI(
    title="Veritas",
    description="Forensic evidence transcription and fact cross-referencing",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Dependencies ---


def get_project() -> ProjectState:
    return project


def get_backend() -> LLMBackend:
    if not settings.google_api_key:
        raise HTTPException(status_code=503, detail="VERITAS_GOOGLE_API_KEY is not configured")
    return GeminiBackend()


# --- Request / Response models ---


class SegmentModel(BaseModel):
    timestamp: str
    seconds: int = 0
    text: str = ""


class ProcessedContentModel(BaseModel):
    """A processed file as produced by ``ProcessedContent.to_dict``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    file_id: str
    file_name: str
    segments: list[SegmentModel] = []
    processed_at: int = 0

    def to_content(self) -> ProcessedContent:
        return ProcessedContent(
            file_id=self.file_id,
            file_name=self.file_name,
            segments=tuple(Segment(s.timestamp, s.seconds, s.text) for s in self.segments),
            processed_at=self.processed_at,
        )


class FactModel(BaseModel):
    id: str
    text: str = ""

    def to_fact(self) -> Fact:
        return Fact(id=self.id, text=self.text)


class SanitizeRequest(BaseModel):
    raw_text: str
    kind: EvidenceKind = EvidenceKind.AUDIO
    file_id: str = ""
    file_name: str = ""


class CorpusRequest(BaseModel):
    corpus: list[ProcessedContentModel] = []
    categories: dict[str, EvidenceCategory] = {}

    def resolver(self) -> CitationResolver:
        return CitationResolver([item.to_content() for item in self.corpus], self.categories)


class ParseReportRequest(CorpusRequest):
    raw_text: str
    facts: list[FactModel] = []


class ResolveRequest(CorpusRequest):
    file_ref: str
    timestamps: list[str]


class ChatParseRequest(BaseModel):
    raw_text: str


class EvidenceUpload(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    name: str
    kind: EvidenceKind
    category: EvidenceCategory = EvidenceCategory.OTHER
    mime_type: str
    content_base64: str

    def to_evidence(self) -> EvidenceFile:
        return EvidenceFile(
            id=self.id,
            name=self.name,
            kind=self.kind,
            category=self.category,
            mime_type=self.mime_type,
            content=base64.b64decode(self.content_base64, validate=True),
        )


class ProcessRequest(BaseModel):
    files: list[EvidenceUpload]


class AnalyzeRequest(BaseModel):
    facts: list[FactModel]
    people: dict[str, str] = {}


class ChatRequest(BaseModel):
    message: str
    people: dict[str, str] = {}


class RenameRequest(BaseModel):
    name: str


def _chat_reply_dict(reply: ChatReply) -> dict:
    blocks: list[dict] = []
    for block in group_reference_lines(reply.text):
        if isinstance(block, ReferenceGroup):
            blocks.append(
                {"fileRef": block.file_ref, "lines": block.lines, "timestamps": block.timestamps}
            )
        else:
            blocks.append({"text": block})
    return {
        "text": reply.text,
        "detectedPeople": [
            {"name": p.name, "fileRef": p.file_ref} for p in reply.detected_people
        ],
        "references": [
            {"fileRef": r.file_ref, "timestamps": list(r.timestamps)} for r in reply.references
        ],
        "blocks": blocks,
    }


# --- Error mapping ---


@app.exception_handler(ReportFormatError)
async def report_format_error_handler(request: Request, exc: ReportFormatError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(httpx.HTTPError)
async def model_error_handler(request: Request, exc: httpx.HTTPError):
    logger.error("Model request failed: %s", exc)
    return JSONResponse(status_code=502, content={"detail": "Model request failed"})


# --- Routes ---


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/api/transcripts/sanitize")
async def sanitize(req: SanitizeRequest):
    """Turn raw model output for one file into processed content."""
    content = build_processed_content(req.file_id, req.file_name, req.raw_text, req.kind)
    return content.to_dict()


@app.post("/api/reports/parse")
async def parse_analysis(req: ParseReportRequest):
    """Parse a tagged analysis response into a report with resolved citations."""
    facts = [f.to_fact() for f in req.facts]
    parsed = parse_report(req.raw_text, facts, req.resolver().resolve_many)
    report = AnalysisReport(general_conclusion=parsed.general_conclusion, results=parsed.results)
    return report.to_dict()


@app.post("/api/citations/resolve")
async def resolve_citations(req: ResolveRequest):
    citations = req.resolver().resolve_many(req.file_ref, req.timestamps)
    return {"citations": [c.to_dict() for c in citations]}


@app.post("/api/chat/parse")
async def parse_chat(req: ChatParseRequest):
    return _chat_reply_dict(parse_chat_reply(req.raw_text))


# --- Project routes ---


@app.get("/api/evidence")
async def list_evidence(state: ProjectState = Depends(get_project)):
    return [
        {**f.manifest(), "virtual": f.is_virtual, "processed": f.id in state.processed}
        for f in state.evidence_files()
    ]


@app.post("/api/evidence/process")
async def process_evidence(
    req: ProcessRequest,
    state: ProjectState = Depends(get_project),
    backend: LLMBackend = Depends(get_backend),
):
    """Transcribe or extract the uploaded files one at a time.

    A file that fails is reported under ``failed``; the rest still go through.
    """
    files = [state.register_file(upload.to_evidence()) for upload in req.files]
    results = await EvidenceProcessor(backend).process_queue(files, on_result=state.store_processed)
    done = {content.file_id for content in results}
    return {
        "processed": [content.to_dict() for content in results],
        "failed": [f.id for f in files if f.id not in done],
    }


@app.get("/api/evidence/{file_id}/segments")
async def get_segments(
    file_id: str,
    at: float | None = None,
    q: str | None = None,
    state: ProjectState = Depends(get_project),
):
    """Segments of one processed file, with the playback position and search hits."""
    content = state.processed.get(file_id)
    if content is None:
        raise HTTPException(status_code=404, detail="Processed content not found")
    response: dict = {"segments": [s.to_dict() for s in content.segments]}
    if at is not None:
        response["active"] = segment_at(content.segments, at)
    if q is not None:
        response["matches"] = search_segments(content.segments, q)
    return response


@app.post("/api/analysis")
async def analyze_facts(
    req: AnalyzeRequest,
    state: ProjectState = Depends(get_project),
    backend: LLMBackend = Depends(get_backend),
):
    """Verify the facts against all processed evidence and keep the report."""
    facts = [f.to_fact() for f in req.facts]
    report = await FactAnalyzer(backend).analyze(
        state.corpus(), facts, state.evidence_files(), req.people
    )
    state.facts = facts
    state.add_report(report)
    return report.to_dict()


@app.get("/api/reports")
async def list_reports(state: ProjectState = Depends(get_project)):
    return [r.to_dict() for r in state.reports]


@app.patch("/api/reports/{report_id}")
async def rename_report(
    report_id: str, req: RenameRequest, state: ProjectState = Depends(get_project)
):
    try:
        report = state.rename_report(report_id, req.name)
    except KeyError:
        raise HTTPException(status_code=404, detail="Report not found")
    return report.to_dict()


@app.delete("/api/reports/{report_id}")
async def delete_report(report_id: str, state: ProjectState = Depends(get_project)):
    try:
        state.delete_report(report_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Report not found")
    return {"deleted": report_id}


@app.post("/api/chat")
async def chat(
    req: ChatRequest,
    state: ProjectState = Depends(get_project),
    backend: LLMBackend = Depends(get_backend),
):
    """Ask a question about the evidence; the exchange joins the chat history."""
    reply = await EvidenceChat(backend).ask(
        state.corpus(), list(state.chat_history), req.message, state.evidence_files(), req.people
    )
    state.chat_history.append(ChatMessage(role="user", text=req.message))
    state.chat_history.append(ChatMessage(role="model", text=reply.text))
    return _chat_reply_dict(reply)


@app.get("/api/project")
async def export_project(state: ProjectState = Depends(get_project)):
    return state.to_project_dict()


@app.get("/api/project/database")
async def export_database(state: ProjectState = Depends(get_project)):
    return state.to_database_dict()


@app.post("/api/project/load")
async def load_project(payload: dict, state: ProjectState = Depends(get_project)):
    """Load a ``project_v2`` or ``database_v2`` file into the current project."""
    try:
        kind = state.load(payload)
    except (KeyError, TypeError) as exc:
        raise HTTPException(status_code=400, detail=f"Malformed project file: missing or invalid {exc}")
    return {"type": kind}
