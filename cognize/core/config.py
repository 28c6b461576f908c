"""
Configuration management for Cognize.

This module handles environment variables, API keys, and model configurations
using python-dotenv for explicit, project-scoped .env loading. No implicit loading occurs at import time.
"""

import logging
import os
import shutil
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from openai import OpenAI

logger = logging.getLogger(__name__)

METADATA_DIRNAME = ".cognize"
DEFAULT_ENV_FILENAME = os.getenv("COGNIZE_ENV_FILENAME", ".env")
ENV_FILE_ENV_VARS = ("COGNIZE_ENV_FILE",)
PROJECT_ROOT_ENV_VARS = ("COGNIZE_PROJECT_ROOT",)


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


@lru_cache(maxsize=32)
def load_config(env_path: Optional[str] = None, override: bool = False) -> None:
    """Explicitly load environment variables from the given .env file path.

    Nothing is loaded when env_path is None.
    """
    if env_path:
        load_dotenv(dotenv_path=env_path, override=override)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name} value: {raw}. Using {default} as default.")
        return default


class Config:
    """Configuration settings for Cognize, read from the environment on access."""

    @property
    def openai_api_key(self) -> str:
        """Get OpenAI API key from environment."""
        key = os.getenv("OPENAI_API_KEY")
        if not key:
            raise ConfigError("OPENAI_API_KEY not found in environment. Please set it in your environment or .env file.")
        return key

    @property
    def openai_base_url(self) -> Optional[str]:
        """Optional base URL for an OpenAI-compatible endpoint."""
        return os.getenv("OPENAI_BASE_URL") or None

    @property
    def llm_model(self) -> str:
        """Chat model used for distillation, relation classification and decision support."""
        return os.getenv("LLM_MODEL", "gpt-4o-mini")

    @property
    def embedding_model(self) -> str:
        """Embedding model. Must stay the same for the lifetime of a record store."""
        return os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")

    @property
    def is_reasoning_model(self) -> bool:
        """Check if the configured model is a reasoning model (default: False)."""
        value = os.getenv("IS_REASONING_MODEL", "false").lower()
        return value in ("true", "1", "yes", "on")

    @property
    def model_temperature(self) -> float:
        """Sampling temperature for standard chat models (default: 0.2)."""
        raw = os.getenv("MODEL_TEMPERATURE", "0.2")
        try:
            temp = float(raw)
        except ValueError:
            logger.warning("Invalid MODEL_TEMPERATURE format. Using 0.2 as default.")
            return 0.2
        if not (0.0 <= temp <= 2.0):
            logger.warning(f"Invalid MODEL_TEMPERATURE value: {temp}. Using 0.2 as default.")
            return 0.2
        return temp

    @property
    def openai_timeout(self) -> int:
        """Get OpenAI API timeout in seconds (default: 60)."""
        return _env_int("OPENAI_TIMEOUT", 60)

    @property
    def max_retries(self) -> int:
        """Get maximum number of retries for API calls (default: 3)."""
        return _env_int("MAX_RETRIES", 3)

    @property
    def related_top_k(self) -> int:
        """Number of past insights linked to a new one (default: 4)."""
        return _env_int("RELATED_TOP_K", 4)


config = Config()


def detect_project_root(start_dir: Optional[str] = None) -> Optional[Path]:
    """Detect project root by looking for a .cognize directory upwards from start_dir (or CWD)."""
    start = Path(start_dir) if start_dir else Path.cwd()
    for current in [start] + list(start.parents):
        if (current / METADATA_DIRNAME).exists():
            return current
    return None


def get_project_metadata_dir(project_root: Optional[str] = None) -> Path:
    """Return the .cognize directory for a given or detected project root."""
    root = Path(project_root) if project_root else (detect_project_root() or Path.cwd())
    return root / METADATA_DIRNAME


def get_project_env_path(project_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME) -> Path:
    """Compute the path to the project-scoped environment file inside .cognize."""
    return get_project_metadata_dir(project_root) / filename


def ensure_project_env(
    project_root: Optional[str] = None,
    source_env: Optional[str] = None,
    filename: str = DEFAULT_ENV_FILENAME,
    overwrite: bool = False,
) -> Path:
    """
    Create or copy a project-scoped env file under .cognize without loading it.

    Behavior:
    - If target exists and overwrite is False, the existing file is preserved.
    - If source_env is provided and exists, it's copied to the target.
    - Else if <project_root>/.env exists, it's copied to the target.
    - Else, a minimal template is created at the target.

    Returns:
        Path to the env file under the project's .cognize directory.
    """
    meta = get_project_metadata_dir(project_root)
    meta.mkdir(parents=True, exist_ok=True)
    target = meta / filename
    if target.exists() and not overwrite:
        return target

    src_candidates = []
    if source_env:
        src_candidates.append(Path(source_env))
    root = Path(project_root) if project_root else Path.cwd()
    src_candidates.append(root / ".env")

    for candidate in src_candidates:
        if candidate.is_file():
            shutil.copyfile(candidate, target)
            return target

    template = (
        "# Project-scoped environment for cognize\n"
        "LLM_MODEL=gpt-4o-mini\n"
        "EMBEDDING_MODEL=text-embedding-3-small\n"
        "IS_REASONING_MODEL=false\n"
        "MODEL_TEMPERATURE=0.2\n"
        "OPENAI_TIMEOUT=60\n"
        "MAX_RETRIES=3\n"
        "RELATED_TOP_K=4\n"
        "# OPENAI_BASE_URL=https://api.openai.com/v1\n"
        "# OPENAI_API_KEY=your-key-here\n"
    )
    target.write_text(template, encoding="utf-8")
    return target


def load_project_env(project_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME, override: bool = False) -> Optional[str]:
    """
    Load a project-scoped environment file, if available.

    Load order (first match wins):
    1) Explicit env file path via COGNIZE_ENV_FILE
    2) <project_root>/.cognize/<filename> (default: .env)

    Returns the path loaded, or None if nothing was loaded.
    """
    for var in ENV_FILE_ENV_VARS:
        explicit = os.getenv(var)
        if explicit and Path(explicit).is_file():
            load_config(explicit, override=override)
            return explicit

    if project_root is None:
        for var in PROJECT_ROOT_ENV_VARS:
            if os.getenv(var):
                project_root = os.getenv(var)
                break
    if project_root is None:
        detected = detect_project_root()
        project_root = str(detected) if detected else None

    if project_root:
        env_path = get_project_env_path(project_root, filename)
        if env_path.exists():
            load_config(str(env_path), override=override)
            return str(env_path)

    return None


@lru_cache(maxsize=1)
def get_client() -> OpenAI:
    """
    Get configured OpenAI client with timeout and retry settings.

    If OPENAI_API_KEY is missing, a project-scoped env is loaded first
    (COGNIZE_ENV_FILE, then <project>/.cognize/.env).

    Raises:
        ConfigError: If API key is not configured after project env lookup
    """
    if not os.getenv("OPENAI_API_KEY"):
        loaded_path = load_project_env()
        if not os.getenv("OPENAI_API_KEY"):
            where = loaded_path or f"{METADATA_DIRNAME}/{DEFAULT_ENV_FILENAME}"
            raise ConfigError(
                f"OPENAI_API_KEY not found in environment. Looked for project env at {where}. "
                f"Set it via environment, COGNIZE_ENV_FILE, or place it under {METADATA_DIRNAME}/{DEFAULT_ENV_FILENAME}."
            )
    try:
        return OpenAI(
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            timeout=config.openai_timeout,
            max_retries=config.max_retries,
        )
    except Exception as e:
        raise ConfigError(f"Failed to create OpenAI client: {e}") from e


def validate_config() -> None:
    """
    Validate that all required configuration is present.

    Raises:
        ConfigError: If required configuration is missing
    """
    _ = get_client()
