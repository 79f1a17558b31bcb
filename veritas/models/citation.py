# Citation records live in report.py next to FactAnalysis, which embeds them.
# Resolver and chat code import them from here.
from veritas.models.report import Citation, CitationRef

__all__ = ["Citation", "CitationRef"]
