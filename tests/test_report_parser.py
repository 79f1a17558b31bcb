"""Tests for parsing the tagged fact analysis response."""

import pytest

from veritas.models.report import Fact, FactStatus, parse_status
from veritas.models.segment import EvidenceCategory, ProcessedContent, Segment
from veritas.orchestrator.citations import CitationResolver
from veritas.orchestrator.report_parser import (
    DEFAULT_CONCLUSION,
    DEFAULT_SUMMARY,
    UNKNOWN_FACT_TEXT,
    ReportFormatError,
    parse_report,
)

FACTS = [Fact(id="abc", text="O arguido estava no café."), Fact(id="def", text="Chovia.")]

MINIMAL_RESPONSE = """\
[[FACT]]
ID: abc
[[STATUS]] Confirmado [[END_STATUS]]
[[SUMMARY]]
A testemunha confirma a presença do arguido.
[[END_SUMMARY]]
[[EVIDENCES]]
- [audio1.mp3 @ 00:10] "Eu vi-o lá"
[[END_EVIDENCES]]
[[END_FACT]]

CONCLUSÃO GLOBAL:
[[CONCLUSION]]
O facto principal está provado.
[[END_CONCLUSION]]
"""


@pytest.fixture(name="resolver")
def resolver_fixture():
    segments = tuple(Segment(f"00:{s:02d}", s, f"fala {s}") for s in (0, 5, 10, 15))
    audio = ProcessedContent(file_id="a1", file_name="audio1.mp3", segments=segments)
    return CitationResolver([audio], {"a1": EvidenceCategory.TESTIMONY})


class RecordingResolver:
    """Stub callback that records calls and echoes nothing."""

    def __init__(self):
        self.calls = []

    def __call__(self, file_ref, timestamps):
        self.calls.append((file_ref, list(timestamps)))
        return []


class TestParseReport:
    def test_minimal_fact(self, resolver):
        parsed = parse_report(MINIMAL_RESPONSE, FACTS, resolver.resolve_many)
        assert parsed.general_conclusion == "O facto principal está provado."
        assert len(parsed.results) == 1

        result = parsed.results[0]
        assert result.fact_id == "abc"
        assert result.fact_text == "O arguido estava no café."
        assert result.status is FactStatus.CONFIRMED
        assert result.status.value == "Confirmado"
        assert result.summary == "A testemunha confirma a presença do arguido."
        assert [c.timestamp for c in result.citations] == ["00:10"]
        assert result.citations[0].file_id == "a1"
        assert result.citations[0].seconds == 10

    def test_plain_status_line(self, resolver):
        raw = "[[FACT]]\nID: abc\nSTATUS: Confirmado\n[[SUMMARY]] ok [[END_SUMMARY]]\n" \
              "[[EVIDENCES]]\n- [audio1.mp3 @ 00:10] x\n[[END_EVIDENCES]]\n[[END_FACT]]"
        result = parse_report(raw, FACTS, resolver.resolve_many).results[0]
        assert result.status is FactStatus.CONFIRMED
        assert len(result.citations) == 1

    def test_multiple_timestamps_yield_one_citation_each(self, resolver):
        raw = "[[FACT]]\nID: abc\n[[EVIDENCES]]\n- [audio1.mp3 @ 00:05, 00:15] x\n" \
              "[[END_EVIDENCES]]\n[[END_FACT]]"
        citations = parse_report(raw, FACTS, resolver.resolve_many).results[0].citations
        assert [c.timestamp for c in citations] == ["00:05", "00:15"]
        assert {c.file_name for c in citations} == {"audio1.mp3"}

    def test_callback_receives_file_and_timestamp_list(self):
        callback = RecordingResolver()
        raw = "[[FACT]]\nID: abc\n[[EVIDENCES]]\n- [file.mp3 @ 01:00, 02:00] \"a\"\n" \
              "- [Auto.pdf @ Pág 1] resumo\n[[END_EVIDENCES]]\n[[END_FACT]]"
        parse_report(raw, FACTS, callback)
        assert callback.calls == [("file.mp3", ["01:00", "02:00"]), ("Auto.pdf", ["Pág 1"])]

    def test_citations_outside_evidences_block_are_ignored(self):
        callback = RecordingResolver()
        raw = "[[FACT]]\nID: abc\n[[SUMMARY]] ver [file.mp3 @ 01:00] [[END_SUMMARY]]\n[[END_FACT]]"
        parse_report(raw, FACTS, callback)
        assert callback.calls == []

    def test_defaults_for_missing_parts(self):
        parsed = parse_report("[[FACT]]\nID: def\n[[END_FACT]]", FACTS, RecordingResolver())
        result = parsed.results[0]
        assert parsed.general_conclusion == DEFAULT_CONCLUSION
        assert result.status is FactStatus.INCONCLUSIVE
        assert result.summary == DEFAULT_SUMMARY
        assert result.citations == []

    def test_unknown_fact_keeps_placeholder_text(self):
        parsed = parse_report("[[FACT]]\nID: zzz\n[[END_FACT]]", FACTS, RecordingResolver())
        assert parsed.results[0].fact_text == UNKNOWN_FACT_TEXT

    def test_block_without_id_is_skipped(self):
        raw = "[[FACT]]\nsem id\n[[END_FACT]]\n[[FACT]]\nID: def\n[[END_FACT]]"
        parsed = parse_report(raw, FACTS, RecordingResolver())
        assert [r.fact_id for r in parsed.results] == ["def"]

    def test_braced_id_is_unwrapped(self):
        parsed = parse_report("[[FACT]]\nID: {abc}\n[[END_FACT]]", FACTS, RecordingResolver())
        assert parsed.results[0].fact_id == "abc"

    def test_unresolvable_citation_keeps_fact(self, resolver):
        raw = "[[FACT]]\nID: abc\n[[EVIDENCES]]\n- [outro.wav @ 00:10] x\n[[END_EVIDENCES]]\n[[END_FACT]]"
        result = parse_report(raw, FACTS, resolver.resolve_many).results[0]
        assert result.citations == []

    def test_response_without_facts_raises(self):
        with pytest.raises(ReportFormatError):
            parse_report("Não consegui analisar os factos.", FACTS, RecordingResolver())

    def test_blank_response_raises(self):
        with pytest.raises(ReportFormatError):
            parse_report("   \n", FACTS, RecordingResolver())


class TestParseStatus:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Confirmado", FactStatus.CONFIRMED),
            ("**Confirmado**", FactStatus.CONFIRMED),
            ("Desmentido", FactStatus.DENIED),
            ("Inconclusivo", FactStatus.INCONCLUSIVE),
            ("Inconclusivo/Contraditório", FactStatus.INCONCLUSIVE),
            ("Não Mencionado", FactStatus.NOT_MENTIONED),
            ("nao mencionado", FactStatus.NOT_MENTIONED),
            ("Confirmed", FactStatus.CONFIRMED),
            ("Talvez", FactStatus.INCONCLUSIVE),
            (None, FactStatus.INCONCLUSIVE),
        ],
    )
    def test_status_text(self, raw, expected):
        assert parse_status(raw) is expected
