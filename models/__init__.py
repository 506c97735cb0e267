from .person_record import PersonRecord, ScopedPersonRecord
from .scope import Scope
from .analysis import AnalysisRequest, AnalysisResult, PartialResult
from .job import BackgroundJob
from .extraction import ExtractionMetadata, ExtractionResult, SearchQuery, SearchPage, ScopeStats

__all__ = [
    "PersonRecord",
    "ScopedPersonRecord",
    "Scope",
    "AnalysisRequest",
    "AnalysisResult",
    "PartialResult",
    "BackgroundJob",
    "ExtractionMetadata",
    "ExtractionResult",
    "SearchQuery",
    "SearchPage",
    "ScopeStats",
]
