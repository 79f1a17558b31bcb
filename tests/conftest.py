"""Pytest configuration and fixtures."""

import pytest

from veritas.backends.base import GenerationRequest
from veritas.models.segment import EvidenceCategory, ProcessedContent, Segment

NUMBER_WORDS = ["zero", "um", "dois", "tres", "quatro", "cinco", "seis", "sete", "oito", "nove"]


class FakeBackend:
    """In-memory LLM backend returning canned answers in order."""

    name = "Fake"

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.requests: list[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture(name="make_backend")
def make_backend_fixture():
    """Factory for fake backends."""
    return FakeBackend


@pytest.fixture(name="testimony")
def testimony_fixture() -> ProcessedContent:
    """A deposition with one utterance every five seconds."""
    segments = tuple(
        Segment(timestamp=f"00:{i * 5:02d}", seconds=i * 5, text=word)
        for i, word in enumerate(NUMBER_WORDS)
    )
    return ProcessedContent(file_id="t1", file_name="deposito1.mp3", segments=segments)


@pytest.fixture(name="document")
def document_fixture() -> ProcessedContent:
    """A three-page police report."""
    segments = (
        Segment(timestamp="Pág 1", seconds=1, text="Identificação do arguido."),
        Segment(timestamp="Pág 2", seconds=2, text="O arguido foi visto no local."),
        Segment(timestamp="Pág 3", seconds=3, text="Assinaturas."),
    )
    return ProcessedContent(file_id="d1", file_name="Auto_Policia.pdf", segments=segments)


@pytest.fixture(name="categories")
def categories_fixture() -> dict:
    return {"t1": EvidenceCategory.TESTIMONY, "d1": EvidenceCategory.INQUIRY}
