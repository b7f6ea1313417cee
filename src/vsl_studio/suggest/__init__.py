from vsl_studio.suggest.coordinator import (
    Acceptance,
    SuggestionCoordinator,
    SuggestionPolicy,
    SuggestionRequest,
    SuggestionState,
    multi_line_policy,
    single_line_policy,
)
from vsl_studio.suggest.fields import MultiLineField, SingleLineField
from vsl_studio.suggest.text import clean_suggestion

__all__ = [
    "Acceptance",
    "MultiLineField",
    "SingleLineField",
    "SuggestionCoordinator",
    "SuggestionPolicy",
    "SuggestionRequest",
    "SuggestionState",
    "clean_suggestion",
    "multi_line_policy",
    "single_line_policy",
]
