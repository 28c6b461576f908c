"""
Debug logging of LLM traffic.

When COGNIZE_DEBUG=1, every distillation, embedding, classification and
decision-support request and response is written as a JSON file under
{project_root}/.cognize/debug/session_<timestamp>/.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


def is_debug_enabled() -> bool:
    """Check if debug logging is enabled via COGNIZE_DEBUG=1."""
    return os.getenv("COGNIZE_DEBUG", "0") == "1"


class DebugLogger:
    """
    Writes one JSON file per logged event into a per-session directory.
    """

    def __init__(self, project_root: str = ".", enabled: Optional[bool] = None):
        """
        Initialize debug logger.

        Args:
            project_root: Project root directory for log storage
            enabled: Override debug enable flag, uses COGNIZE_DEBUG env var if None
        """
        self.project_root = project_root
        self.enabled = enabled if enabled is not None else is_debug_enabled()
        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")

        if self.enabled:
            self._setup_log_directory()

    def _setup_log_directory(self) -> None:
        self.log_dir = Path(self.project_root) / ".cognize" / "debug"
        self.session_dir = self.log_dir / f"session_{self.session_id}"
        self.session_dir.mkdir(parents=True, exist_ok=True)

    def _write(self, step: str, payload: Dict[str, Any]) -> None:
        timestamp = datetime.now().isoformat()
        log_data = {"timestamp": timestamp, "session_id": self.session_id, "step": step}
        log_data.update(payload)

        filename = f"{step}_{timestamp.replace(':', '-').replace('.', '_')}.json"
        with open(self.session_dir / filename, "w", encoding="utf-8") as f:
            json.dump(log_data, f, indent=2, ensure_ascii=False, default=str)

    def log_llm_request(self, request_type: str, prompt: str, extra: Optional[Dict[str, Any]] = None) -> None:
        """
        Log an outgoing LLM request.

        Args:
            request_type: distillation, embedding, classification or decision
            prompt: Full prompt or input text sent to the model
            extra: Additional request details (e.g. candidate ids)
        """
        if not self.enabled:
            return

        self._write(f"{request_type}_request", {"type": "request", "prompt": prompt, "extra": extra or {}})

    def log_llm_response(self, request_type: str, response_content: str) -> None:
        """Log the raw content of an LLM response."""
        if not self.enabled:
            return

        self._write(
            f"{request_type}_response",
            {"type": "response", "response_content": response_content, "response_length": len(response_content)},
        )

    def log_validation_error(self, error: Exception, raw_data: Any, context: str = "validation") -> None:
        """
        Log a response that failed model validation.

        Args:
            error: The exception that occurred
            raw_data: The raw data that failed validation
            context: Context description for the error
        """
        if not self.enabled:
            return

        errors_method = getattr(error, "errors", None)
        self._write(
            f"{context}_validation_error",
            {
                "type": "validation_error",
                "error": str(error),
                "error_type": type(error).__name__,
                "raw_data": raw_data,
                "validation_errors": errors_method() if callable(errors_method) else [],
            },
        )
