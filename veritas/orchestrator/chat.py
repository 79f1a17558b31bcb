"""Evidence chat — free questions answered from the processed evidence."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from veritas.backends.base import GenerationRequest, LLMBackend
from veritas.config import settings
from veritas.models.citation import CitationRef
from veritas.models.report import ChatMessage
from veritas.models.segment import EvidenceFile, ProcessedContent
from veritas.orchestrator.analyzer import build_evidence_context, category_map
from veritas.orchestrator.citations import extract_references
from veritas.text.loops import clean_repetitive_loops

logger = logging.getLogger(__name__)

CHAT_ERROR_TEXT = "Erro ao processar chat."
EMPTY_REPLY_TEXT = "Sem resposta."

CHAT_INSTRUCTIONS = """\
INSTRUÇÕES:
1. Consulta TUDO antes de responder.
2. Distingue entre o que foi dito em depoimento (category="TESTIMONY") e o que está nos autos (category="INQUIRY").
3. AGRUPAMENTO POR FONTE: Se encontrares várias evidências no mesmo ficheiro, agrupa-as.
4. CITAÇÕES MÚLTIPLAS: lista os momentos no formato [Ficheiro.mp3 @ 01:00, 02:30, 05:15].
5. Dá respostas completas e explicativas.

DETEÇÃO DE PESSOAS:
Se a pergunta envolver identificar pessoas, no final da resposta gera a etiqueta
[[DETECTED_PEOPLE: Nome da Pessoa | Nome do Ficheiro, Outra Pessoa | Outro Ficheiro, Pessoa Sem Ficheiro]]\
"""

_PEOPLE_TAG_RE = re.compile(r"\[\[DETECTED_PEOPLE:(.*?)\]\]", re.DOTALL)


@dataclass(frozen=True)
class DetectedPerson:
    name: str
    file_ref: str | None = None


@dataclass
class ChatReply:
    text: str
    detected_people: list[DetectedPerson] = field(default_factory=list)
    references: list[CitationRef] = field(default_factory=list)


def parse_detected_people(payload: str) -> list[DetectedPerson]:
    """``Name | file, Name2`` entries of a DETECTED_PEOPLE tag."""
    people = []
    for entry in payload.split(","):
        name, _, file_ref = entry.partition("|")
        name = name.strip()
        if not name:
            continue
        people.append(DetectedPerson(name=name, file_ref=file_ref.strip() or None))
    return people


def parse_chat_reply(raw_text: str) -> ChatReply:
    """Clean a chat answer and pull out its people tag and citations."""
    text = clean_repetitive_loops(raw_text or "")
    people: list[DetectedPerson] = []
    match = _PEOPLE_TAG_RE.search(text)
    if match:
        people = parse_detected_people(match.group(1))
        text = (text[: match.start()] + text[match.end() :]).strip()
    return ChatReply(text=text, detected_people=people, references=extract_references(text))


class EvidenceChat:
    """Answers questions about the evidence, keeping the conversation history."""

    def __init__(self, backend: LLMBackend, temperature: float | None = None) -> None:
        self.backend = backend
        self.temperature = settings.chat_temperature if temperature is None else temperature

    def _build_prompt(
        self,
        processed: Sequence[ProcessedContent],
        history: Sequence[ChatMessage],
        message: str,
        files: Sequence[EvidenceFile],
        people: Mapping[str, str] | None,
    ) -> str:
        context = build_evidence_context(
            processed, category_map(files), people, tag="document", unknown_person="N/A"
        )
        transcript = "\n".join(
            f"{'User' if m.role == 'user' else 'AI'}: {m.text}" for m in history
        )
        return (
            f"BASE DE DADOS (Áudios, Autos, Documentos):\n{context}\n\n"
            f"HISTÓRICO:\n{transcript}\n\n"
            f"PERGUNTA:\n{message}\n\n"
            f"{CHAT_INSTRUCTIONS}"
        )

    async def ask(
        self,
        processed: Sequence[ProcessedContent],
        history: Sequence[ChatMessage],
        message: str,
        files: Sequence[EvidenceFile] = (),
        people: Mapping[str, str] | None = None,
    ) -> ChatReply:
        """Ask one question; a failed model call yields a fixed error reply."""
        prompt = self._build_prompt(processed, history, message, files, people)
        try:
            raw_text = await self.backend.generate(
                GenerationRequest(prompt=prompt, temperature=self.temperature)
            )
        except Exception as exc:
            logger.warning("Chat request failed: %s", exc)
            return ChatReply(text=CHAT_ERROR_TEXT)
        return parse_chat_reply(raw_text or EMPTY_REPLY_TEXT)
