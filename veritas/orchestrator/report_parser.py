"""Report parser — the analyzer's tagged response to typed fact results.

The fact analyzer asks the model to answer in a fixed tag vocabulary::

    [[FACT]]
    ID: f1
    [[STATUS]] Confirmado [[END_STATUS]]
    [[SUMMARY]] ... [[END_SUMMARY]]
    [[EVIDENCES]]
    - [depoimento.mp3 @ 01:20, 05:30] "..."
    [[END_EVIDENCES]]
    [[END_FACT]]
    [[CONCLUSION]] ... [[END_CONCLUSION]]

Missing pieces inside a fact fall back to defaults; a response with no
usable fact at all is an error, since it means the format was ignored.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Sequence

from veritas.models.report import Citation, Fact, FactAnalysis, parse_status
from veritas.orchestrator.citations import CITATION_RE, split_timestamps

logger = logging.getLogger(__name__)

DEFAULT_CONCLUSION = "Análise concluída."
DEFAULT_SUMMARY = "Sem resumo disponível."
UNKNOWN_FACT_TEXT = "Desconhecido"

ResolveCallback = Callable[[str, Sequence[str]], list[Citation]]

_CONCLUSION_RE = re.compile(r"\[\[CONCLUSION\]\]([\s\S]*?)\[\[END_CONCLUSION\]\]")
_STATUS_RE = re.compile(r"\[\[STATUS\]\]([\s\S]*?)\[\[END_STATUS\]\]")
_STATUS_LINE_RE = re.compile(r"^\s*STATUS:\s*([^\n\[]+)", re.MULTILINE | re.IGNORECASE)
_SUMMARY_RE = re.compile(r"\[\[SUMMARY\]\]([\s\S]*?)\[\[END_SUMMARY\]\]")
_EVIDENCES_RE = re.compile(r"\[\[EVIDENCES\]\]([\s\S]*?)\[\[END_EVIDENCES\]\]")
_ID_RE = re.compile(r"ID:\s*([^\n\[]*)")


class ReportFormatError(ValueError):
    """The model's analysis did not follow the tag format."""


@dataclass
class ParsedReport:
    general_conclusion: str
    results: list[FactAnalysis]


def _search(pattern: re.Pattern, text: str) -> str | None:
    match = pattern.search(text)
    return match.group(1).strip() if match else None


def parse_evidences(evidences: str, resolve_citation: ResolveCallback) -> list[Citation]:
    """Resolve every ``[file @ t1, t2]`` marker of an evidences block."""
    citations: list[Citation] = []
    for match in CITATION_RE.finditer(evidences):
        file_ref = match.group(1).strip()
        timestamps = split_timestamps(match.group(2))
        if not file_ref or not timestamps:
            continue
        citations.extend(resolve_citation(file_ref, timestamps))
    return citations


def _parse_fact_block(
    block: str, facts_by_id: dict[str, Fact], resolve_citation: ResolveCallback
) -> FactAnalysis | None:
    block = block.split("[[END_FACT]]", 1)[0]
    fact_id = (_search(_ID_RE, block) or "").strip("{} ")
    if not fact_id:
        logger.debug("Fact block without an ID, skipping")
        return None

    status_text = _search(_STATUS_RE, block) or _search(_STATUS_LINE_RE, block)
    fact = facts_by_id.get(fact_id)
    return FactAnalysis(
        fact_id=fact_id,
        fact_text=fact.text if fact else UNKNOWN_FACT_TEXT,
        status=parse_status(status_text),
        summary=_search(_SUMMARY_RE, block) or DEFAULT_SUMMARY,
        citations=parse_evidences(_search(_EVIDENCES_RE, block) or "", resolve_citation),
    )


def parse_report(
    raw_text: str, facts: Sequence[Fact], resolve_citation: ResolveCallback
) -> ParsedReport:
    """Parse a tagged analysis response.

    ``resolve_citation`` turns a file reference plus its timestamps into
    citations, typically :meth:`CitationResolver.resolve_many`.

    Raises:
        ReportFormatError: if the response is blank or yields no fact.
    """
    if not raw_text or not raw_text.strip():
        raise ReportFormatError("Empty analysis response")

    conclusion = _search(_CONCLUSION_RE, raw_text) or DEFAULT_CONCLUSION
    facts_by_id = {fact.id: fact for fact in facts}

    results: list[FactAnalysis] = []
    for block in raw_text.split("[[FACT]]")[1:]:
        analysis = _parse_fact_block(block, facts_by_id, resolve_citation)
        if analysis is not None:
            results.append(analysis)

    if not results:
        raise ReportFormatError("Analysis response contained no [[FACT]] results")

    logger.info("Parsed %d fact results", len(results))
    return ParsedReport(general_conclusion=conclusion, results=results)
