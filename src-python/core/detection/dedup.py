"""Same-type overlap deduplication of classifier candidates."""

from __future__ import annotations

import logging
from typing import Iterable

from models.schemas import Detection
from core.detection.bbox_utils import overlap_ratio
from core.detection.detection_config import DEDUP_OVERLAP_RATIO

logger = logging.getLogger(__name__)


def dedupe(
    candidates: Iterable[Detection],
    threshold: float = DEDUP_OVERLAP_RATIO,
) -> list[Detection]:
    """Collapse overlapping same-type candidates into single detections.

    Each candidate is compared, in order, against the detections accepted
    so far.  The first accepted detection of the same type that covers more
    than *threshold* of the candidate's area is its duplicate: the
    candidate replaces it in place when strictly more confident, otherwise
    it is dropped.  Different types never merge.
    """
    accepted: list[Detection] = []
    for cand in candidates:
        dup_index = next(
            (
                i for i, kept in enumerate(accepted)
                if kept.type == cand.type
                and overlap_ratio(kept.bbox, cand.bbox) > threshold
            ),
            None,
        )
        if dup_index is None:
            accepted.append(cand)
        elif cand.confidence > accepted[dup_index].confidence:
            logger.debug(
                f"Replacing {accepted[dup_index].type.value} '{accepted[dup_index].text}' "
                f"with higher-confidence '{cand.text}'"
            )
            accepted[dup_index] = cand
    return accepted
