"""Label analysis algorithms: matching, density, signals and scoring."""

from .density import analyze_text_density, count_text_blocks
from .matching import (
    any_match,
    count_matches,
    fuzzy_search,
    levenshtein_distance,
    matching_keywords,
    similarity,
)
from .scoring import (
    DEFAULT_SCORING,
    NO_CHARACTERISTICS_REASON,
    ScoreTier,
    ScoringConfig,
    calculate_label_score,
    score_signals,
)
from .signals import (
    DEFAULT_VOCABULARY,
    KeywordVocabulary,
    SignalReport,
    detect_barcode_qr,
    detect_signals,
    has_ingredients,
    has_manufacturer_info,
    has_nutritional_info,
    has_storage_info,
)

__all__ = [
    # Matching
    "any_match",
    "count_matches",
    "fuzzy_search",
    "levenshtein_distance",
    "matching_keywords",
    "similarity",
    # Density
    "analyze_text_density",
    "count_text_blocks",
    # Signals
    "DEFAULT_VOCABULARY",
    "KeywordVocabulary",
    "SignalReport",
    "detect_barcode_qr",
    "detect_signals",
    "has_ingredients",
    "has_manufacturer_info",
    "has_nutritional_info",
    "has_storage_info",
    # Scoring
    "DEFAULT_SCORING",
    "NO_CHARACTERISTICS_REASON",
    "ScoreTier",
    "ScoringConfig",
    "calculate_label_score",
    "score_signals",
]
