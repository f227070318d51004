"""Repair and extraction of topics from LLM search responses."""

from trendlens.parsing.pipeline import (
    DEFAULT_STRATEGIES,
    ResponseRepairPipeline,
    Strategy,
    fallback_topic,
    unavailable_topic,
)
from trendlens.parsing.batch import parse_batch_response
from trendlens.parsing.json_repair import (
    clean_candidate,
    find_candidates,
    harvest_objects,
    is_truncated,
    repair_truncated_json,
    salvage_corrupted_json,
)

__all__ = [
    "DEFAULT_STRATEGIES",
    "ResponseRepairPipeline",
    "Strategy",
    "fallback_topic",
    "unavailable_topic",
    "parse_batch_response",
    "clean_candidate",
    "find_candidates",
    "harvest_objects",
    "is_truncated",
    "repair_truncated_json",
    "salvage_corrupted_json",
]
