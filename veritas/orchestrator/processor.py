"""Evidence processor — sends evidence files to the model and sanitizes the result."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Sequence

from veritas.backends.base import Attachment, GenerationRequest, LLMBackend
from veritas.config import settings
from veritas.models.segment import EvidenceFile, EvidenceKind, ProcessedContent
from veritas.text.sanitizer import TranscriptSanitizer, build_processed_content

logger = logging.getLogger(__name__)

AUDIO_INSTRUCTION = """\
És um Transcritor Forense Profissional.
A TUA MISSÃO: Transcrever áudio judicial com rigor absoluto em Português de Portugal.

REGRAS DE FORMATAÇÃO (RIGOROSAS):
1. OBRIGATÓRIO: Coloca cada nova fala numa NOVA LINHA.
2. OBRIGATÓRIO: Inicia cada fala com o carimbo de tempo [MM:SS] ou [HH:MM:SS].
3. NUNCA mistures falas diferentes na mesma linha.
4. Se houver silêncio ou música, ignora.
5. Transcreve exatamente o que é dito.

EXEMPLO DO FORMATO DESEJADO:
[00:01] Bom dia a todos.
[00:03] Bom dia, senhor Juiz.
[01:15:20] Vamos iniciar a sessão.\
"""
AUDIO_PROMPT = "Transcreve este áudio. Formato estrito: uma linha por carimbo [MM:SS] ou [HH:MM:SS]."

DOCUMENT_INSTRUCTION = """\
És um Assistente Legal encarregue de digitalizar Autos de Inquirição e Provas Documentais.
A TUA MISSÃO: Extrair TODO o texto legível deste documento.
FORMATO:
- Se o documento tiver páginas, usa [Pág 1], [Pág 2] em linhas separadas no início de cada página.
- Divide o texto por parágrafos lógicos.
- Mantém o rigor do texto original.\
"""
DOCUMENT_PROMPT = "Extrai o texto integral. Usa [Pág X] para separar páginas."


class ProcessingError(RuntimeError):
    """An evidence file could not be turned into processed content."""


class CancellationToken:
    """Cooperative stop flag checked by the queue between files."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class EvidenceProcessor:
    """Transcribes audio and extracts documents, one file at a time."""

    def __init__(
        self,
        backend: LLMBackend,
        sanitizer: TranscriptSanitizer | None = None,
        temperature: float | None = None,
    ) -> None:
        self.backend = backend
        self.sanitizer = sanitizer or TranscriptSanitizer()
        self.temperature = (
            settings.transcription_temperature if temperature is None else temperature
        )
        self.pending: list[str] = []

    def _build_request(self, evidence: EvidenceFile) -> GenerationRequest:
        if evidence.kind is EvidenceKind.AUDIO:
            system, prompt = AUDIO_INSTRUCTION, AUDIO_PROMPT
        else:
            system, prompt = DOCUMENT_INSTRUCTION, DOCUMENT_PROMPT
        return GenerationRequest(
            prompt=prompt,
            system=system,
            attachments=[Attachment(mime_type=evidence.mime_type, data=evidence.content or b"")],
            temperature=self.temperature,
        )

    async def process(self, evidence: EvidenceFile) -> ProcessedContent:
        """Send one file to the backend and sanitize its answer.

        Raises:
            ProcessingError: for virtual files, backend failures and empty answers.
        """
        if evidence.is_virtual:
            raise ProcessingError(f"{evidence.name} is a virtual file and cannot be processed")

        try:
            raw_text = await self.backend.generate(self._build_request(evidence))
        except Exception as exc:
            raise ProcessingError(f"Processing failed for {evidence.name}: {exc}") from exc

        if not raw_text.strip():
            raise ProcessingError(f"Processing failed for {evidence.name}: empty model response")

        content = build_processed_content(
            evidence.id, evidence.name, raw_text, evidence.kind, sanitizer=self.sanitizer
        )
        logger.info("Processed %s into %d segments", evidence.name, len(content.segments))
        return content

    async def process_queue(
        self,
        files: Sequence[EvidenceFile],
        token: CancellationToken | None = None,
        on_result: Callable[[ProcessedContent], Awaitable[None] | None] | None = None,
    ) -> list[ProcessedContent]:
        """Process ``files`` sequentially until done or cancelled.

        A failing file is logged and skipped. Results finished before a
        cancellation are kept and returned.
        """
        token = token or CancellationToken()
        self.pending = [f.id for f in files]
        results: list[ProcessedContent] = []

        for evidence in files:
            if token.cancelled:
                logger.info("Processing cancelled with %d files pending", len(self.pending))
                break
            try:
                content = await self.process(evidence)
            except ProcessingError as exc:
                logger.error("Skipping %s: %s", evidence.name, exc)
            else:
                results.append(content)
                if on_result is not None:
                    outcome = on_result(content)
                    if outcome is not None:
                        await outcome
            finally:
                self.pending.remove(evidence.id)

        self.pending = []
        return results
