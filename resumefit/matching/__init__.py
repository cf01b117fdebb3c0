from .dedup import deduplicate_elements, deduplication_stats, DeduplicationStats
from .engine import best_matches, Scorer
from .scoring import assign_importance, assign_importance_scores, dimension_for, match_quality
from .semantic import are_synonyms, SemanticMatcher

__all__ = [
    "deduplicate_elements",
    "deduplication_stats",
    "DeduplicationStats",
    "best_matches",
    "Scorer",
    "assign_importance",
    "assign_importance_scores",
    "dimension_for",
    "match_quality",
    "are_synonyms",
    "SemanticMatcher",
]
