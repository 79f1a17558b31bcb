"""Fact analyzer — cross-references facts against the processed evidence."""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from veritas.backends.base import GenerationRequest, LLMBackend
from veritas.config import settings
from veritas.models.report import AnalysisReport, Fact
from veritas.models.segment import EvidenceCategory, EvidenceFile, ProcessedContent
from veritas.orchestrator.citations import CitationResolver
from veritas.orchestrator.report_parser import parse_report

logger = logging.getLogger(__name__)

ANALYSIS_INSTRUCTION = """\
És um Juiz e Analista Forense.

OBJETIVO: Verificar factos cruzando DEPOIMENTOS (Áudio/Transcrições), AUTOS DE INQUIRIÇÃO (PDF) e OUTRAS PROVAS.

INSTRUÇÕES:
1. Usa as provas para confirmar ou desmentir cada facto.
2. Responde num formato estruturado com etiquetas (tags).
3. RIGOR DAS CITAÇÕES:
   - Para ÁUDIOS (category="TESTIMONY"): Cita literalmente o que foi dito, entre aspas.
   - Para DOCUMENTOS/AUTOS (category="INQUIRY" ou "OTHER"): Faz um pequeno RESUMO contextual do que o documento diz sobre o facto.
4. AGRUPAMENTO POR FONTE: Se houver múltiplos momentos no mesmo ficheiro, usa o formato: [Ficheiro.mp3 @ 01:20, 05:30].

FORMATO OBRIGATÓRIO PARA CADA FACTO:
[[FACT]]
ID: {id do facto}
[[STATUS]] {Confirmado | Desmentido | Inconclusivo | Não Mencionado} [[END_STATUS]]
[[SUMMARY]]
Resumo da análise baseada nas provas.
[[END_SUMMARY]]
[[EVIDENCES]]
- [NomeDoAudio.mp3 @ 00:00] "Texto citado"
- [NomeDoAudio.mp3 @ 05:30, 06:10] "Outro texto relevante"
- [Auto_Policia.pdf @ Pág 1] "Resumo do que consta na página"
[[END_EVIDENCES]]
[[END_FACT]]

CONCLUSÃO GLOBAL:
[[CONCLUSION]]
Conclusão geral.
[[END_CONCLUSION]]\
"""

UNKNOWN_PERSON = "Desconhecido"


def category_map(files: Sequence[EvidenceFile]) -> dict[str, EvidenceCategory]:
    return {f.id: f.category for f in files}


def build_evidence_context(
    processed: Sequence[ProcessedContent],
    categories: Mapping[str, EvidenceCategory],
    people: Mapping[str, str] | None = None,
    tag: str = "file",
    unknown_person: str = UNKNOWN_PERSON,
) -> str:
    """Wrap each file's full text in a tag carrying name, person and category."""
    people = people or {}
    blocks = []
    for content in processed:
        category = categories.get(content.file_id, EvidenceCategory.OTHER)
        person = people.get(content.file_id, unknown_person)
        blocks.append(
            f'<{tag} name="{content.file_name}" person="{person}" category="{category.value}">\n'
            f"{content.full_text}\n"
            f"</{tag}>"
        )
    return "\n\n".join(blocks)


class FactAnalyzer:
    """Asks the model for a verdict on every fact and parses the tagged reply."""

    def __init__(self, backend: LLMBackend, temperature: float | None = None) -> None:
        self.backend = backend
        self.temperature = settings.analysis_temperature if temperature is None else temperature

    async def analyze(
        self,
        processed: Sequence[ProcessedContent],
        facts: Sequence[Fact],
        files: Sequence[EvidenceFile] = (),
        people: Mapping[str, str] | None = None,
    ) -> AnalysisReport:
        """Produce an ``AnalysisReport`` for ``facts``.

        Raises:
            ValueError: if there is no processed evidence or no fact.
            ReportFormatError: if the model ignored the tag format.
        """
        if not processed or not facts:
            raise ValueError("Analysis needs processed evidence and at least one fact")

        categories = category_map(files)
        facts_list = "\n".join(f"{i}. [ID: {fact.id}] {fact.text}" for i, fact in enumerate(facts, 1))
        prompt = (
            "EVIDÊNCIAS DISPONÍVEIS:\n"
            f"{build_evidence_context(processed, categories, people)}\n\n"
            "FACTOS A VERIFICAR:\n"
            f"{facts_list}"
        )

        raw_text = await self.backend.generate(
            GenerationRequest(prompt=prompt, system=ANALYSIS_INSTRUCTION, temperature=self.temperature)
        )

        resolver = CitationResolver(processed, categories)
        parsed = parse_report(raw_text, facts, resolver.resolve_many)
        logger.info(
            "Analysis produced %d results over %d files", len(parsed.results), len(processed)
        )
        return AnalysisReport(general_conclusion=parsed.general_conclusion, results=parsed.results)
