"""
Retrieval ranking over the knowledge corpus.

Exhaustive scan: every record is scored against the target embedding and the
best matches are returned. Corpora are personal knowledge bases, so no
approximate index is used.
"""

from typing import Dict, List, Optional, Sequence

from .similarity import score_corpus
from .timing import timer
from .types import KnowledgeRecord, RelatedItem, RelationType

DEFAULT_TOP_K = 3


@timer
def find_related(
    target_embedding: Sequence[float],
    corpus: Sequence[KnowledgeRecord],
    exclude_id: Optional[str] = None,
    top_k: int = DEFAULT_TOP_K,
) -> List[RelatedItem]:
    """
    Find the records most similar to a target embedding.

    Args:
        target_embedding: Query vector
        corpus: All stored records available for retrieval
        exclude_id: Optional record id to leave out (used when re-linking a stored record)
        top_k: Maximum number of items to return

    Returns:
        Unclassified related items sorted by descending score, at most top_k long
    """
    if top_k <= 0:
        return []

    candidates = [record for record in corpus if exclude_id is None or record.id != exclude_id]
    scores = score_corpus(target_embedding, [record.embedding for record in candidates])

    scored = [
        RelatedItem(
            record_id=record.id,
            original_text=record.original_text,
            conclusion=record.analysis.conclusion,
            score=score,
            relation_type=RelationType.UNKNOWN,
        )
        for record, score in zip(candidates, scores)
    ]

    # sorted() is stable: ties keep corpus order
    scored = sorted(scored, key=lambda item: item.score, reverse=True)
    return scored[:top_k]


def resolve_records(related: Sequence[RelatedItem], corpus: Sequence[KnowledgeRecord]) -> List[KnowledgeRecord]:
    """
    Map ranked items back to their full records.

    Rank order is preserved; items whose record is no longer in the corpus are dropped.
    """
    by_id: Dict[str, KnowledgeRecord] = {record.id: record for record in corpus}
    return [by_id[item.record_id] for item in related if item.record_id in by_id]
