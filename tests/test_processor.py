"""Tests for the evidence processor and its queue."""

import pytest

from veritas.models.segment import EvidenceCategory, EvidenceFile, EvidenceKind
from veritas.orchestrator.processor import (
    AUDIO_INSTRUCTION,
    DOCUMENT_INSTRUCTION,
    CancellationToken,
    EvidenceProcessor,
    ProcessingError,
)
from veritas.text.sanitizer import TimePolicy, TranscriptSanitizer


def _audio(file_id="a1", name="depoimento.mp3"):
    return EvidenceFile(
        id=file_id,
        name=name,
        kind=EvidenceKind.AUDIO,
        category=EvidenceCategory.TESTIMONY,
        mime_type="audio/mpeg",
        content=b"\x00" * 16,
    )


def _pdf(file_id="d1", name="auto.pdf"):
    return EvidenceFile(
        id=file_id, name=name, kind=EvidenceKind.PDF, mime_type="application/pdf", content=b"%PDF"
    )


class TestProcess:
    @pytest.mark.asyncio
    async def test_audio_is_transcribed_and_sanitized(self, make_backend):
        backend = make_backend(["```\n[00:01] Bom dia.\n[00:05] Olá. [00:07] Sim.\n```"])
        content = await EvidenceProcessor(backend).process(_audio())

        assert content.file_id == "a1"
        assert content.file_name == "depoimento.mp3"
        assert [s.seconds for s in content.segments] == [1, 5, 7]

        request = backend.requests[0]
        assert request.system == AUDIO_INSTRUCTION
        assert request.attachments[0].mime_type == "audio/mpeg"
        assert request.temperature == pytest.approx(0.2)

    @pytest.mark.asyncio
    async def test_document_uses_extraction_instruction(self, make_backend):
        backend = make_backend(["[Pág 1] Auto.\n[Pág 2] Assinaturas."])
        content = await EvidenceProcessor(backend).process(_pdf())
        assert [s.timestamp for s in content.segments] == ["Pág 1", "Pág 2"]
        assert backend.requests[0].system == DOCUMENT_INSTRUCTION

    @pytest.mark.asyncio
    async def test_unstructured_document_falls_back_to_paragraphs(self, make_backend):
        backend = make_backend(["Primeiro.\n\nSegundo."])
        content = await EvidenceProcessor(backend).process(_pdf())
        assert [s.timestamp for s in content.segments] == ["Parte 1", "Parte 2"]

    @pytest.mark.asyncio
    async def test_sanitizer_policy_is_used(self, make_backend):
        backend = make_backend(["[00:10] A.\n[00:05] B."])
        processor = EvidenceProcessor(backend, sanitizer=TranscriptSanitizer(TimePolicy.SKIP))
        content = await processor.process(_audio())
        assert [s.text for s in content.segments] == ["A."]

    @pytest.mark.asyncio
    async def test_virtual_file_cannot_be_processed(self, make_backend):
        virtual = EvidenceFile(id="v1", name="importado.mp3", kind=EvidenceKind.AUDIO)
        with pytest.raises(ProcessingError, match="virtual"):
            await EvidenceProcessor(make_backend()).process(virtual)

    @pytest.mark.asyncio
    async def test_empty_response_is_an_error(self, make_backend):
        with pytest.raises(ProcessingError, match="empty"):
            await EvidenceProcessor(make_backend(["  \n"])).process(_audio())

    @pytest.mark.asyncio
    async def test_backend_failure_is_wrapped(self, make_backend):
        backend = make_backend(error=RuntimeError("quota exceeded"))
        with pytest.raises(ProcessingError, match="quota exceeded") as exc_info:
            await EvidenceProcessor(backend).process(_audio())
        assert isinstance(exc_info.value.__cause__, RuntimeError)


class TestProcessQueue:
    @pytest.mark.asyncio
    async def test_failed_file_is_skipped(self, make_backend):
        backend = make_backend(["[00:01] Um.", RuntimeError("boom"), "[00:01] Três."])
        processor = EvidenceProcessor(backend)
        files = [_audio("a1"), _audio("a2"), _audio("a3")]

        results = await processor.process_queue(files)

        assert [r.file_id for r in results] == ["a1", "a3"]
        assert processor.pending == []

    @pytest.mark.asyncio
    async def test_cancellation_stops_between_files(self, make_backend):
        backend = make_backend(["[00:01] Um.", "[00:01] Dois.", "[00:01] Três."])
        processor = EvidenceProcessor(backend)
        token = CancellationToken()
        seen = []

        def on_result(content):
            seen.append((content.file_id, list(processor.pending)))
            token.cancel()

        results = await processor.process_queue([_audio("a1"), _audio("a2"), _audio("a3")], token, on_result)

        assert [r.file_id for r in results] == ["a1"]
        assert seen == [("a1", ["a1", "a2", "a3"])]
        assert len(backend.requests) == 1
        assert processor.pending == []

    @pytest.mark.asyncio
    async def test_async_callback_is_awaited(self, make_backend):
        backend = make_backend(["[00:01] Um."])
        stored = []

        async def on_result(content):
            stored.append(content.file_id)

        await EvidenceProcessor(backend).process_queue([_audio()], on_result=on_result)
        assert stored == ["a1"]

    @pytest.mark.asyncio
    async def test_already_cancelled_token_processes_nothing(self, make_backend):
        token = CancellationToken()
        token.cancel()
        backend = make_backend(["[00:01] Um."])
        assert await EvidenceProcessor(backend).process_queue([_audio()], token) == []
        assert backend.requests == []
