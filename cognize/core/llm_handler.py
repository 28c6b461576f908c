"""
LLM Handler for all model requests made by Cognize.

Wraps an OpenAI-compatible client and provides the distillation, embedding,
relation classification and decision-support calls, with reasoning-model
parameter fallback and debug logging of every request.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from .config import config, get_client
from .debug_log import DebugLogger
from .relations import ClassificationCandidate
from .types import Insight, KnowledgeRecord, RelationType

logger = logging.getLogger(__name__)

DECISION_FALLBACK_MESSAGE = "Unable to generate decision support for this question."


class LLMHandlerError(Exception):
    """Base exception for LLM Handler errors."""

    pass


class GenerationError(LLMHandlerError):
    """Raised when the distillation model returns no usable insight."""

    pass


class EmbeddingError(LLMHandlerError):
    """Raised when the embedding model returns no vector."""

    pass


class ReasoningModelError(LLMHandlerError):
    """Raised when reasoning model parameter adjustment fails."""

    pass


def is_reasoning_model_error(exception: Exception) -> bool:
    """
    Check if the exception is a 400 rejecting temperature/max_tokens.

    Reasoning models reject these parameters with type 'invalid_request_error'
    and code 'unsupported_value' or 'unsupported_parameter'.
    """
    if getattr(exception, "status_code", None) != 400:
        return False

    error_data = getattr(exception, "body", None)
    if not isinstance(error_data, dict):
        return False

    error_info = error_data.get("error", error_data)
    if not isinstance(error_info, dict):
        return False

    error_type = str(error_info.get("type") or "").lower()
    error_code = str(error_info.get("code") or "").lower()
    error_param = str(error_info.get("param") or "").lower()

    return (
        error_type == "invalid_request_error"
        and error_code in ("unsupported_value", "unsupported_parameter")
        and error_param in ("temperature", "max_tokens")
    )


def adjust_llm_params_for_reasoning_model(original_params: Dict[str, Any], request_type: str) -> Dict[str, Any]:
    """
    Drop parameters reasoning models reject.

    max_tokens is carried over as max_completion_tokens.
    """
    adjusted_params = original_params.copy()
    adjusted_params.pop("temperature", None)
    if "max_tokens" in adjusted_params:
        adjusted_params["max_completion_tokens"] = adjusted_params.pop("max_tokens")

    logger.info(f"Adjusted parameters for reasoning model ({request_type}): {sorted(adjusted_params)}")
    return adjusted_params


def make_llm_request_with_reasoning_fallback(client: Any, original_params: Dict[str, Any], request_type: str) -> Any:
    """
    Make a chat completion, retrying once with reasoning-model parameters if needed.

    Raises:
        ReasoningModelError: If the retry with adjusted parameters also fails
    """
    try:
        return client.chat.completions.create(**original_params)
    except Exception as e:
        if not is_reasoning_model_error(e):
            raise

        logger.info(f"Detected reasoning model error, adjusting parameters for {request_type}")
        adjusted_params = adjust_llm_params_for_reasoning_model(original_params, request_type)
        try:
            return client.chat.completions.create(**adjusted_params)
        except Exception as retry_error:
            raise ReasoningModelError(f"Failed to make LLM request even after adjusting for reasoning model: {retry_error}") from e


class LLMHandler:
    """
    Distillation, embedding and relation classification service.

    The client is injected so tests and callers can substitute their own;
    use LLMHandler.from_config() to build one from the environment.
    """

    def __init__(self, client: Any, debug_logger: Optional[DebugLogger] = None, model: Optional[str] = None, embedding_model: Optional[str] = None):
        """
        Args:
            client: OpenAI-compatible client
            debug_logger: Debug logger; a disabled-by-env one is created if None
            model: Chat model override (defaults to LLM_MODEL)
            embedding_model: Embedding model override (defaults to EMBEDDING_MODEL)
        """
        self.client = client
        self.debug_logger = debug_logger or DebugLogger()
        self.model = model or config.llm_model
        self.embedding_model = embedding_model or config.embedding_model

    @classmethod
    def from_config(cls, project_root: str = ".") -> "LLMHandler":
        """Build a handler around the configured OpenAI client."""
        return cls(get_client(), debug_logger=DebugLogger(project_root))

    def _chat_params(self, system_prompt: str, user_prompt: str, json_mode: bool) -> Dict[str, Any]:
        request_params: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}, {"role": "user", "content": user_prompt}],
        }
        if json_mode:
            request_params["response_format"] = {"type": "json_object"}
        if not config.is_reasoning_model:
            request_params["temperature"] = config.model_temperature
        return request_params

    def _complete(self, request_type: str, system_prompt: str, user_prompt: str, json_mode: bool) -> str:
        self.debug_logger.log_llm_request(request_type, f"SYSTEM: {system_prompt}\n\nUSER: {user_prompt}")

        params = self._chat_params(system_prompt, user_prompt, json_mode)
        response = make_llm_request_with_reasoning_fallback(self.client, params, request_type)

        content = response.choices[0].message.content if response.choices else None
        if content:
            self.debug_logger.log_llm_response(request_type, content)
        return content or ""

    def distill(self, text: str) -> Insight:
        """
        Distill free-form text into an Insight.

        Raises:
            GenerationError: If the model returns no usable content
        """
        try:
            content = self._complete("distillation", self._create_distillation_system_prompt(), self._create_distillation_user_prompt(text), True)
        except Exception as e:
            raise GenerationError(f"Distillation request failed: {e}") from e

        if not content.strip():
            raise GenerationError("Empty response from distillation model")

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise GenerationError(f"Invalid JSON response from distillation model: {e}") from e

        try:
            return Insight.model_validate(data)
        except ValidationError as e:
            self.debug_logger.log_validation_error(e, data, "insight")
            raise GenerationError(f"Distillation response does not match the insight schema: {e}") from e

    def embed(self, text: str) -> List[float]:
        """
        Generate an embedding for text.

        Raises:
            EmbeddingError: If no vector is returned
        """
        self.debug_logger.log_llm_request("embedding", text, {"model": self.embedding_model})
        try:
            response = self.client.embeddings.create(model=self.embedding_model, input=text)
        except Exception as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        data = getattr(response, "data", None)
        if not data or not getattr(data[0], "embedding", None):
            raise EmbeddingError("Failed to generate embedding: no vector returned")
        return [float(value) for value in data[0].embedding]

    def classify(self, target_text: str, candidates: Sequence[ClassificationCandidate]) -> Any:
        """
        Ask the model how each candidate relates to the target text.

        Returns:
            Decoded JSON payload, or the raw text when it is not valid JSON

        Raises:
            LLMHandlerError: If the request fails or returns nothing
        """
        content = self._complete(
            "classification",
            self._create_classification_system_prompt(),
            self._create_classification_user_prompt(target_text, candidates),
            True,
        )
        if not content.strip():
            raise LLMHandlerError("Empty response from classification model")

        try:
            return json.loads(content)
        except json.JSONDecodeError:
            logger.warning("Classification model returned non-JSON content")
            return content

    def decision_support(self, question: str, context_records: Sequence[KnowledgeRecord]) -> str:
        """
        Organize past insights into a decision lens for the question.

        Raises:
            LLMHandlerError: If the request fails
        """
        try:
            content = self._complete(
                "decision",
                self._create_decision_system_prompt(),
                self._create_decision_user_prompt(question, context_records),
                False,
            )
        except LLMHandlerError:
            raise
        except Exception as e:
            raise LLMHandlerError(f"Decision support request failed: {e}") from e

        return content.strip() or DECISION_FALLBACK_MESSAGE

    def _create_distillation_system_prompt(self) -> str:
        return """You are a senior expert across many fields. Distill the core knowledge of the text you are given into three layers:

1. conclusion: the single most essential insight, stated in one sentence.
2. keyJudgments: 3 concrete judgments, principles or core arguments.
3. reusableExpressions: 3 quotable phrases, metaphors or concise formulations from or derived from the text.

Always answer in the same language as the input text.

Respond only with valid JSON of this shape:
{
  "conclusion": "string",
  "keyJudgments": ["string", "string", "string"],
  "reusableExpressions": ["string", "string", "string"]
}"""

    def _create_distillation_user_prompt(self, text: str) -> str:
        return f"""Text to analyze:

{text}"""

    def _create_classification_system_prompt(self) -> str:
        labels = ", ".join(member.value for member in RelationType.classified())
        return f"""You compare a new core insight (Target) with several past insights (Candidates).
For each candidate decide its relation to the target:
- Similar: the same view, or the same mental model.
- Conflicting: the opposite view, or a different perspective or counterexample.
- Supplementary: extra background, detail or extension.

Respond only with JSON of this shape:
{{"items": [{{"recordId": "string", "relationType": "one of {labels}", "reasoning": "short explanation"}}]}}

Write each reasoning in the same language as the Target."""

    def _create_classification_user_prompt(self, target_text: str, candidates: Sequence[ClassificationCandidate]) -> str:
        lines = [f'Target: "{target_text}"', ""]
        for index, candidate in enumerate(candidates):
            lines.append(f'Candidate {index}: ID={candidate.id} Content="{candidate.text}"')
        return "\n".join(lines)

    def _create_decision_system_prompt(self) -> str:
        return """You are a decision-support assistant. Do not make the decision for the user; help them think more clearly by organizing their own past insights and highlighting decision factors.

Constraints:
- Do NOT tell the user what they should do.
- Do NOT introduce external advice unless it is reflected in the user's past insights.
- Base all reasoning strictly on the provided insights and use neutral, reflective language.
- Answer in the language of the user's question, translating the section headers if needed.

Use this structure:

Decision Context
Current goal: ...
Key constraints: ...
Uncertainties or risks: ...

Relevant Past Judgments
Pattern 1: ...
Pattern 2: ...

Trade-off Signals
Option A tends to prioritize: ...
Option B tends to prioritize: ...

Reflection Prompts
In similar situations, you often value: ...
A factor you sometimes underestimate is: ...
A question you may want to ask yourself now is: ..."""

    def _create_decision_user_prompt(self, question: str, context_records: Sequence[KnowledgeRecord]) -> str:
        blocks = []
        for index, record in enumerate(context_records, 1):
            date = datetime.fromtimestamp(record.timestamp / 1000).date().isoformat()
            principles = "; ".join(record.analysis.key_judgments)
            blocks.append(f"Insight {index} ({date}):\n  Conclusion: {record.analysis.conclusion}\n  Principles: {principles}")

        context = "\n\n".join(blocks) if blocks else "(no related insights)"
        return f"""User's question: "{question}"

Related personal insights:
{context}"""
