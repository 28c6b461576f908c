"""
Knowledge distillation pipeline.

Orchestrates the collaborators around the retrieval core:
1. Distill text into an insight and embed it
2. Rank past records against the new embedding
3. Classify how the best matches relate to the new insight
4. Persist the new record

Also provides semantic search, decision support and random review over the
stored corpus.
"""

import logging
import random
from typing import List, Literal, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from .llm_handler import EmbeddingError, GenerationError
from .progress import reporter
from .relations import RelationClassifier, classify_relations
from .retrieval import find_related, resolve_records
from .store import RecordStore, search_text
from .types import Insight, KnowledgeRecord, RelatedItem

logger = logging.getLogger(__name__)


class DistillationError(Exception):
    """Raised when a distillation run fails."""

    pass


class DistillationService(RelationClassifier, Protocol):
    """Model-backed service the pipeline depends on."""

    def distill(self, text: str) -> Insight: ...

    def embed(self, text: str) -> List[float]: ...

    def decision_support(self, question: str, context_records: Sequence[KnowledgeRecord]) -> str: ...


class DistillationResult(BaseModel):
    """New record plus the classified past insights linked to it."""

    record: KnowledgeRecord
    related: List[RelatedItem] = Field(default_factory=list)


class SearchResult(BaseModel):
    """Records matching a search, and how they were found."""

    records: List[KnowledgeRecord] = Field(default_factory=list)
    mode: Literal["all", "semantic", "text"] = "semantic"


class DecisionResult(BaseModel):
    """Decision-support analysis and the insights it was based on."""

    analysis: str
    context: List[KnowledgeRecord] = Field(default_factory=list)


class KnowledgeDistiller:
    """
    Runs the distill-link-store flow and the read-side queries over a record store.
    """

    def __init__(
        self,
        service: DistillationService,
        store: RecordStore,
        related_top_k: int = 4,
        search_top_k: int = 20,
        decision_top_k: int = 8,
    ):
        """
        Args:
            service: Distillation, embedding and relation classification service
            store: Record store holding the corpus
            related_top_k: Past insights linked to each new one
            search_top_k: Maximum semantic search results
            decision_top_k: Insights given to decision support as context
        """
        self.service = service
        self.store = store
        self.related_top_k = related_top_k
        self.search_top_k = search_top_k
        self.decision_top_k = decision_top_k

    def distill(self, text: str) -> DistillationResult:
        """
        Distill text, link it to past insights and store it.

        Nothing is stored if distillation or embedding fails.

        Raises:
            DistillationError: On blank input or collaborator failure
        """
        if not text or not text.strip():
            raise DistillationError("Cannot distill empty text")

        try:
            reporter.step("Distilling insight…")
            insight = self.service.distill(text)
            reporter.step("Generating embedding…")
            embedding = self.service.embed(text)
        except (GenerationError, EmbeddingError) as e:
            raise DistillationError(str(e)) from e

        reporter.step("Finding related insights…")
        corpus = self.store.list_all()
        candidates = find_related(embedding, corpus, top_k=self.related_top_k)
        reporter.complete_sub_step(f"Scored {len(corpus)} stored insight(s)")

        related: List[RelatedItem] = []
        if candidates:
            reporter.step("Classifying relations…")
            related = classify_relations(insight.conclusion, candidates, self.service)

        reporter.step("Saving record…")
        record = KnowledgeRecord.create(text, insight, embedding)
        self.store.append(record)
        logger.info(f"Stored record {record.id} linked to {len(related)} past insight(s)")

        return DistillationResult(record=record, related=related)

    def relink(self, record_id: str, top_k: Optional[int] = None) -> List[RelatedItem]:
        """
        Re-link a stored record against the rest of the corpus.

        Raises:
            DistillationError: If the record does not exist
        """
        corpus = self.store.list_all()
        record = next((r for r in corpus if r.id == record_id), None)
        if record is None:
            raise DistillationError(f"Record not found: {record_id}")

        candidates = find_related(record.embedding, corpus, exclude_id=record.id, top_k=top_k if top_k is not None else self.related_top_k)
        return classify_relations(record.analysis.conclusion, candidates, self.service)

    def search(self, query: str) -> SearchResult:
        """
        Semantic search over stored insights, degrading to substring search
        when the query cannot be embedded.
        """
        corpus = self.store.list_all()
        if not query.strip():
            return SearchResult(records=corpus, mode="all")

        try:
            query_embedding = self.service.embed(query)
        except EmbeddingError as e:
            logger.warning(f"Semantic search unavailable, falling back to text search: {e}")
            return SearchResult(records=search_text(query, corpus), mode="text")

        related = find_related(query_embedding, corpus, top_k=self.search_top_k)
        return SearchResult(records=resolve_records(related, corpus), mode="semantic")

    def decide(self, question: str) -> DecisionResult:
        """
        Build a decision lens for a question from the most relevant past insights.

        Raises:
            DistillationError: On blank input or collaborator failure
        """
        if not question.strip():
            raise DistillationError("Cannot analyze an empty question")

        corpus = self.store.list_all()
        try:
            reporter.step("Finding relevant insights…")
            query_embedding = self.service.embed(question)
            context = resolve_records(find_related(query_embedding, corpus, top_k=self.decision_top_k), corpus)

            reporter.step("Generating decision support…")
            analysis = self.service.decision_support(question, context)
        except Exception as e:
            raise DistillationError(f"Decision support failed: {e}") from e

        return DecisionResult(analysis=analysis, context=context)

    def review(self, rng: Optional[random.Random] = None) -> Optional[KnowledgeRecord]:
        """Pick a random stored insight to review, or None if the store is empty."""
        return pick_for_review(self.store.list_all(), rng)


def pick_for_review(records: Sequence[KnowledgeRecord], rng: Optional[random.Random] = None) -> Optional[KnowledgeRecord]:
    """Pick a random record, or None when there are none."""
    if not records:
        return None
    return (rng or random).choice(list(records))
