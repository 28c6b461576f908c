"""
Type definitions for Cognize.

This module defines the knowledge record model shared by the similarity engine,
the retrieval ranker and the relation classifier adapter, plus the collaborator
payloads they exchange.
"""

import time
import uuid
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RelationType(str, Enum):
    """
    Semantic relationship between a new insight and a past one.

    UNKNOWN is the default for candidates that have not been classified yet.
    """

    SIMILAR = "Similar"
    CONFLICTING = "Conflicting"
    SUPPLEMENTARY = "Supplementary"
    UNKNOWN = "Unknown"

    @classmethod
    def classified(cls) -> List["RelationType"]:
        """Labels a relation classifier is allowed to emit."""
        return [cls.SIMILAR, cls.CONFLICTING, cls.SUPPLEMENTARY]

    @classmethod
    def parse(cls, value: object) -> Optional["RelationType"]:
        """Map a classifier label onto the classified set, or None if it is not one."""
        if isinstance(value, cls):
            return value if value is not cls.UNKNOWN else None
        if not isinstance(value, str):
            return None
        label = value.strip().lower()
        for member in cls.classified():
            if member.value.lower() == label:
                return member
        return None


class Insight(BaseModel):
    """
    Structured result of distilling a piece of text.

    Attributes:
        conclusion: One-sentence core insight
        key_judgments: Judgments, principles or arguments behind the conclusion
        reusable_expressions: Quotable phrasings worth reusing
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    conclusion: str = Field(..., description="One-sentence core insight")
    key_judgments: List[str] = Field(default_factory=list, alias="keyJudgments", description="Key judgments or principles")
    reusable_expressions: List[str] = Field(default_factory=list, alias="reusableExpressions", description="Reusable phrasings")


class KnowledgeRecord(BaseModel):
    """
    A stored piece of distilled knowledge.

    Records are created once per successful distillation and never mutated.
    All embeddings in one corpus must come from the same embedding model.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., description="Opaque unique identifier")
    timestamp: int = Field(..., description="Creation time in epoch milliseconds")
    original_text: str = Field(..., alias="originalText", description="Raw input text")
    analysis: Insight = Field(..., description="Distilled insight")
    embedding: List[float] = Field(default_factory=list, description="Semantic embedding of the original text")

    @classmethod
    def create(cls, text: str, analysis: Insight, embedding: List[float]) -> "KnowledgeRecord":
        """Build a new record with a generated id and the current timestamp."""
        return cls(
            id=uuid.uuid4().hex,
            timestamp=int(time.time() * 1000),
            original_text=text,
            analysis=analysis,
            embedding=list(embedding),
        )


class RelatedItem(BaseModel):
    """
    A past record scored against a query embedding.

    Text fields are copies taken at scoring time, not live references.
    """

    model_config = ConfigDict(populate_by_name=True)

    record_id: str = Field(..., alias="recordId", description="Id of the referenced record")
    original_text: str = Field(..., alias="originalText", description="Original text of the referenced record")
    conclusion: str = Field(..., description="Conclusion of the referenced record")
    score: float = Field(..., ge=-1.0, le=1.0, description="Cosine similarity to the query")
    relation_type: RelationType = Field(default=RelationType.UNKNOWN, alias="relationType", description="Classified relation")
    reasoning: Optional[str] = Field(default=None, description="Classifier explanation, if classified")


class RelationJudgment(BaseModel):
    """
    One verdict returned by a relation classifier.
    """

    model_config = ConfigDict(populate_by_name=True)

    record_id: str = Field(..., alias="recordId", description="Id of the candidate being judged")
    relation_type: RelationType = Field(..., alias="relationType", description="Relation label")
    reasoning: Optional[str] = Field(default=None, description="Short explanation in the target's language")
