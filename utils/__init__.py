# utils/__init__.py
"""General utility functions for the ClueForge pipeline."""

from .similarity import max_cosine_similarity, numpy_cosine_similarity
from .stage_logging import describe_error, log_stage_error, log_stage_success
from .text_processing import (
    count_words,
    dedupe_strings,
    normalize_whitespace,
    tokenize_lower,
    truncate_for_log,
)

__all__ = [
    "count_words",
    "dedupe_strings",
    "describe_error",
    "log_stage_error",
    "log_stage_success",
    "max_cosine_similarity",
    "normalize_whitespace",
    "numpy_cosine_similarity",
    "tokenize_lower",
    "truncate_for_log",
]
