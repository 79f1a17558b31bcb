"""Tests for the fact analyzer."""

import pytest

from veritas.models.report import AnalysisReport, Fact, FactStatus
from veritas.models.segment import EvidenceCategory, EvidenceFile, EvidenceKind
from veritas.orchestrator.analyzer import (
    ANALYSIS_INSTRUCTION,
    FactAnalyzer,
    build_evidence_context,
)
from veritas.orchestrator.report_parser import ReportFormatError

FACTS = [Fact(id="f1", text="O arguido estava no local.")]

FILES = [
    EvidenceFile(id="t1", name="deposito1.mp3", kind=EvidenceKind.AUDIO, category=EvidenceCategory.TESTIMONY),
    EvidenceFile(id="d1", name="Auto_Policia.pdf", kind=EvidenceKind.PDF, category=EvidenceCategory.INQUIRY),
]

RESPONSE = """\
[[FACT]]
ID: f1
[[STATUS]] Confirmado [[END_STATUS]]
[[SUMMARY]]
A testemunha e o auto coincidem.
[[END_SUMMARY]]
[[EVIDENCES]]
- [deposito1.mp3 @ 00:10] "dois"
- [Auto_Policia.pdf @ Pág 2] Refere a presença do arguido.
[[END_EVIDENCES]]
[[END_FACT]]
[[CONCLUSION]] Provado. [[END_CONCLUSION]]
"""


class TestBuildEvidenceContext:
    def test_file_block_carries_name_person_and_category(self, testimony, categories):
        context = build_evidence_context([testimony], categories, {"t1": "João"})
        assert context.startswith('<file name="deposito1.mp3" person="João" category="TESTIMONY">')
        assert "[00:10] dois" in context
        assert context.endswith("</file>")

    def test_missing_person_and_category(self, document):
        context = build_evidence_context([document], {})
        assert 'person="Desconhecido" category="OTHER"' in context


class TestFactAnalyzer:
    @pytest.mark.asyncio
    async def test_report_with_resolved_citations(self, make_backend, testimony, document):
        backend = make_backend([RESPONSE])
        report = await FactAnalyzer(backend).analyze([testimony, document], FACTS, FILES)

        assert isinstance(report, AnalysisReport)
        assert report.general_conclusion == "Provado."
        assert report.name.startswith("Relatório #")

        result = report.results[0]
        assert result.status is FactStatus.CONFIRMED
        assert result.fact_text == "O arguido estava no local."
        testimony_cite, page_cite = result.citations
        assert testimony_cite.text.split()[0] == "um"
        assert page_cite.text == "O arguido foi visto no local."

    @pytest.mark.asyncio
    async def test_prompt_lists_evidence_and_facts(self, make_backend, testimony):
        backend = make_backend([RESPONSE])
        await FactAnalyzer(backend, temperature=0.0).analyze([testimony], FACTS, FILES)

        request = backend.requests[0]
        assert request.system == ANALYSIS_INSTRUCTION
        assert request.temperature == 0.0
        assert "1. [ID: f1] O arguido estava no local." in request.prompt
        assert 'category="TESTIMONY"' in request.prompt

    @pytest.mark.asyncio
    async def test_no_facts(self, make_backend, testimony):
        backend = make_backend()
        with pytest.raises(ValueError):
            await FactAnalyzer(backend).analyze([testimony], [])
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_no_evidence(self, make_backend):
        with pytest.raises(ValueError):
            await FactAnalyzer(make_backend()).analyze([], FACTS)

    @pytest.mark.asyncio
    async def test_untagged_reply_is_a_format_error(self, make_backend, testimony):
        backend = make_backend(["Não foi possível analisar."])
        with pytest.raises(ReportFormatError):
            await FactAnalyzer(backend).analyze([testimony], FACTS, FILES)
