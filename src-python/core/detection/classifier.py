"""Three-pass PII classifier over normalized OCR tokens.

Pass order (earlier passes take precedence in deduplication ties):

1. **Token** — each word on its own: emails, card numbers, numeric ids.
2. **Window** — runs of 1–6 consecutive words; for every start index the
   shortest span that satisfies any window rule is emitted and longer spans
   from that start are not tried.
3. **Line** — whole OCR lines, catching layouts the fixed window misses
   (long addresses, names printed alone on a line).

The raw candidates are then collapsed by :func:`core.detection.dedup.dedupe`.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Optional, Sequence

from models.schemas import BBox, Detection, DetectionSource, Line, PIIType, Rect, Token
from core.detection.dedup import dedupe
from core.detection.detection_config import (
    DEDUP_OVERLAP_RATIO,
    LINE_NAME_CONFIDENCE,
    MAX_WINDOW_SPAN,
    MIN_BBOX_DIMENSION,
)
from core.detection.rules import (
    LINE_NAME_RULE,
    LINE_RULES,
    TOKEN_RULES,
    WINDOW_RULES,
    Rule,
    first_match,
)

logger = logging.getLogger(__name__)


def make_detection(
    pii_type: PIIType,
    boxes: Sequence[BBox],
    confidences: Sequence[float],
    text: str,
    source: DetectionSource,
) -> Detection:
    """Aggregate constituent boxes into one origin+extent detection.

    The rect covers the union of *boxes*; the origin is clamped to be
    non-negative and each side is at least one pixel.
    """
    left = min(b.x0 for b in boxes)
    top = min(b.y0 for b in boxes)
    right = max(b.x1 for b in boxes)
    bottom = max(b.y1 for b in boxes)
    return Detection(
        type=pii_type,
        text=text,
        confidence=sum(confidences) / max(1, len(confidences)),
        bbox=Rect(
            left=max(0.0, left),
            top=max(0.0, top),
            width=max(MIN_BBOX_DIMENSION, right - left),
            height=max(MIN_BBOX_DIMENSION, bottom - top),
        ),
        source=source,
    )


def _from_tokens(rule: Rule, tokens: Sequence[Token], source: DetectionSource) -> Detection:
    return make_detection(
        rule.pii_type,
        [t.bbox for t in tokens],
        [t.confidence for t in tokens],
        " ".join(t.text for t in tokens).strip(),
        source,
    )


# ---------------------------------------------------------------------------
# Passes
# ---------------------------------------------------------------------------

def _token_pass(tokens: Sequence[Token], rules: Sequence[Rule]) -> list[Detection]:
    found: list[Detection] = []
    for token in tokens:
        rule = first_match(rules, [token.text])
        if rule is not None:
            found.append(_from_tokens(rule, [token], DetectionSource.TOKEN))
    return found


def first_window_match(
    tokens: Sequence[Token],
    start: int,
    rules: Sequence[Rule],
    max_span: int = MAX_WINDOW_SPAN,
) -> Optional[tuple[int, Rule]]:
    """Return ``(span, rule)`` for the shortest window at *start* that any
    rule accepts, or None when no span up to *max_span* matches."""
    limit = min(max_span, len(tokens) - start)
    for span in range(1, limit + 1):
        words = [t.text for t in tokens[start:start + span]]
        rule = first_match(rules, words)
        if rule is not None:
            return span, rule
    return None


def _window_pass(tokens: Sequence[Token], rules: Sequence[Rule]) -> list[Detection]:
    found: list[Detection] = []
    for i in range(len(tokens)):
        hit = first_window_match(tokens, i, rules)
        if hit is None:
            continue
        span, rule = hit
        found.append(_from_tokens(rule, tokens[i:i + span], DetectionSource.WINDOW))
    return found


def _line_pass(lines: Sequence[Line], rules: Sequence[Rule]) -> list[Detection]:
    found: list[Detection] = []
    for line in lines:
        text = line.text.strip()
        if not text:
            continue
        rule = first_match(rules, [text])
        if rule is not None:
            found.append(make_detection(
                rule.pii_type, [line.bbox], [line.confidence], text, DetectionSource.LINE,
            ))
        elif LINE_NAME_RULE.matches(text, text.split()):
            found.append(make_detection(
                PIIType.NAME, [line.bbox], [LINE_NAME_CONFIDENCE], text, DetectionSource.LINE,
            ))
    return found


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def detect_candidates(
    tokens: Sequence[Token],
    lines: Sequence[Line] = (),
    token_rules: Sequence[Rule] = TOKEN_RULES,
    window_rules: Sequence[Rule] = WINDOW_RULES,
    line_rules: Sequence[Rule] = LINE_RULES,
) -> list[Detection]:
    """Run all three passes and return raw, undeduplicated candidates."""
    words = [t for t in tokens if t.text.strip()]
    candidates = _token_pass(words, token_rules)
    candidates += _window_pass(words, window_rules)
    candidates += _line_pass(lines, line_rules)
    return candidates


def classify(
    tokens: Sequence[Token],
    lines: Sequence[Line] = (),
    overlap_threshold: float = DEDUP_OVERLAP_RATIO,
) -> list[Detection]:
    """Classify OCR tokens/lines into deduplicated PII detections.

    Returned boxes are in the OCR-processing coordinate space.
    """
    candidates = detect_candidates(tokens, lines)
    detections = dedupe(candidates, overlap_threshold)
    logger.debug(
        f"Classified {len(tokens)} tokens / {len(lines)} lines: "
        f"{len(candidates)} candidates → {len(detections)} detections"
    )
    return detections


def group_lines(tokens: Sequence[Token]) -> list[Line]:
    """Build Lines from tokens sharing ``(block, paragraph, line)`` indices.

    Used when an OCR source only reports words.  Line order follows the
    first appearance of each key; words keep their original order.
    """
    groups: dict[tuple[int, int, int], list[Token]] = defaultdict(list)
    for token in tokens:
        groups[(token.block_index, token.paragraph_index, token.line_index)].append(token)

    lines: list[Line] = []
    for words in groups.values():
        lines.append(Line(
            text=" ".join(w.text for w in words),
            bbox=BBox(
                x0=min(w.bbox.x0 for w in words),
                y0=min(w.bbox.y0 for w in words),
                x1=max(w.bbox.x1 for w in words),
                y1=max(w.bbox.y1 for w in words),
            ),
            confidence=sum(w.confidence for w in words) / len(words),
            words=list(words),
        ))
    return lines
