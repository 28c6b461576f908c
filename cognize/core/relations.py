"""
Relation classification for ranked candidates.

The adapter hands the target conclusion and the candidates' conclusions to an
external classifier and merges the returned labels back onto the candidates.
Classification is best-effort: any classifier failure leaves the candidates
unclassified instead of propagating.
"""

import json
import logging
from typing import Any, Dict, List, NamedTuple, Protocol, Sequence

from .timing import timer
from .types import RelatedItem, RelationJudgment, RelationType

logger = logging.getLogger(__name__)

# Keys under which classifiers have been seen to wrap the judgment list
WRAPPER_KEYS = ("items", "result", "results", "relations", "classifications")


class ClassificationCandidate(NamedTuple):
    """Id and text of one candidate as sent to the classifier."""

    id: str
    text: str


class RelationClassifier(Protocol):
    """External service that labels how candidates relate to a target text."""

    def classify(self, target_text: str, candidates: Sequence[ClassificationCandidate]) -> Any:
        """Return the raw decoded classifier payload."""
        ...


def normalize_judgments(payload: Any) -> List[RelationJudgment]:
    """
    Normalize a classifier payload into judgments.

    Accepted shapes are a list of judgment objects, or an object wrapping that
    list under one of WRAPPER_KEYS. A JSON string is decoded first. Anything
    else yields an empty list. Entries without an id or with a label outside
    the classified set are skipped.

    Args:
        payload: Raw classifier response

    Returns:
        List of valid judgments in payload order
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError:
            return []

    entries: Any = None
    if isinstance(payload, list):
        entries = payload
    elif isinstance(payload, dict):
        for key in WRAPPER_KEYS:
            if isinstance(payload.get(key), list):
                entries = payload[key]
                break

    if entries is None:
        return []

    judgments: List[RelationJudgment] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue

        record_id = entry.get("recordId", entry.get("record_id", entry.get("id")))
        relation_type = RelationType.parse(entry.get("relationType", entry.get("relation_type")))
        if record_id is None or relation_type is None:
            logger.debug(f"Skipping unusable classification entry: {entry}")
            continue

        reasoning = entry.get("reasoning")
        judgments.append(
            RelationJudgment(
                record_id=str(record_id),
                relation_type=relation_type,
                reasoning=str(reasoning) if reasoning is not None else None,
            )
        )

    return judgments


def merge_judgments(candidates: Sequence[RelatedItem], judgments: Sequence[RelationJudgment]) -> List[RelatedItem]:
    """
    Apply judgments to candidates by record id.

    Candidates keep their order; unmatched ones are returned unchanged. When
    several judgments name the same id, the first one wins.
    """
    by_id: Dict[str, RelationJudgment] = {}
    for judgment in judgments:
        by_id.setdefault(judgment.record_id, judgment)

    merged = []
    for item in candidates:
        judgment = by_id.get(item.record_id)
        if judgment is None:
            merged.append(item)
        else:
            merged.append(item.model_copy(update={"relation_type": judgment.relation_type, "reasoning": judgment.reasoning}))
    return merged


@timer
def classify_relations(target_conclusion: str, candidates: Sequence[RelatedItem], classifier: RelationClassifier) -> List[RelatedItem]:
    """
    Label each candidate with its relation to the target conclusion.

    Args:
        target_conclusion: Conclusion of the new insight
        candidates: Ranked candidates from find_related
        classifier: Relation classification service

    Returns:
        Candidates in the same order and length, classified where possible.
        If the classifier fails, the input candidates are returned unchanged.
    """
    if not candidates:
        return []

    request = [ClassificationCandidate(id=item.record_id, text=item.conclusion) for item in candidates]

    try:
        payload = classifier.classify(target_conclusion, request)
        judgments = normalize_judgments(payload)
    except Exception as e:
        logger.warning(f"Relation classification unavailable, returning unclassified candidates: {e}")
        return list(candidates)

    if not judgments:
        logger.info("Relation classifier returned no usable judgments")

    return merge_judgments(candidates, judgments)
