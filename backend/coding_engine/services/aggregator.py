"""Candidate aggregator.

Flattens resolver output into one candidate list in resolver order,
deduplicating by exact code.
"""

import logging

from coding_engine.services.code_types import CandidateCode, Resolution

logger = logging.getLogger(__name__)


def aggregate(resolutions: list[Resolution]) -> list[CandidateCode]:
    """Merge resolutions into a deduplicated candidate list.

    A code keeps the position of its first occurrence. When a later
    occurrence has a strictly higher base score it replaces the earlier
    candidate in place; on a tie the first-seen candidate is kept.
    """
    merged: list[CandidateCode] = []
    index_by_code: dict[str, int] = {}

    for resolution in resolutions:
        for candidate in resolution.candidates():
            existing_index = index_by_code.get(candidate.code)
            if existing_index is None:
                index_by_code[candidate.code] = len(merged)
                merged.append(candidate)
                continue
            if candidate.base_score > merged[existing_index].base_score:
                logger.debug(
                    f"Duplicate {candidate.code}: keeping {candidate.triggered_by} "
                    f"over {merged[existing_index].triggered_by}"
                )
                merged[existing_index] = candidate

    return merged


def collect_warnings(resolutions: list[Resolution]) -> list[str]:
    """Resolver warnings in resolver order, without repeats."""
    warnings: list[str] = []
    for resolution in resolutions:
        for warning in resolution.warnings:
            if warning not in warnings:
                warnings.append(warning)
    return warnings
