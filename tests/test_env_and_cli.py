"""
Tests for configuration loading and the Typer CLI.

The OpenAI client is replaced by a dummy; CLI commands run against a distiller
wired to a fake service.
"""

import json
import os
from pathlib import Path
from typing import List, Optional
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from cognize.core.config import Config, ConfigError, ensure_project_env, get_client, get_project_env_path, load_project_env
from cognize.core.pipeline import KnowledgeDistiller
from cognize.core.store import RecordStore
from cognize.core.types import Insight, KnowledgeRecord
from cognize.main import app


class DummyOpenAI:
    """
    Minimal stand-in for the OpenAI client that records its init parameters.
    """

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, timeout: Optional[int] = None, max_retries: Optional[int] = None, **_: object):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries


class FakeService:
    """Service returning fixed embeddings and labelling every candidate Similar."""

    def distill(self, text: str) -> Insight:
        return Insight(conclusion=f"insight: {text}", key_judgments=["j"], reusable_expressions=["e"])

    def embed(self, text: str) -> List[float]:
        return [1.0, 0.0]

    def classify(self, target_text, candidates):
        return [{"recordId": c.id, "relationType": "Similar", "reasoning": "same direction"} for c in candidates]

    def decision_support(self, question, context_records) -> str:
        return f"lens: {question}"


def write_file(path: Path, content: str) -> None:
    """Helper to write a text file with UTF-8 encoding."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def seed_store(root: Path) -> RecordStore:
    store = RecordStore(str(root))
    store.append(
        KnowledgeRecord(
            id="past0001abcdef",
            timestamp=1_700_000_000_000,
            original_text="an older note about focus",
            analysis=Insight(conclusion="Focus beats multitasking"),
            embedding=[0.9, 0.1],
        )
    )
    return store


@pytest.fixture(autouse=True)
def clear_get_client_cache():
    get_client.cache_clear()
    yield
    get_client.cache_clear()


@pytest.fixture
def isolated_api_key(monkeypatch: pytest.MonkeyPatch):
    """Remove OPENAI_API_KEY and restore the original value after the test, even if dotenv sets it."""
    monkeypatch.setenv("OPENAI_API_KEY", "placeholder")
    monkeypatch.delenv("OPENAI_API_KEY")
    monkeypatch.delenv("COGNIZE_ENV_FILE", raising=False)
    monkeypatch.delenv("COGNIZE_PROJECT_ROOT", raising=False)


def json_tail(stdout: str) -> dict:
    """Parse the JSON document printed after the progress checkmarks."""
    return json.loads(stdout[stdout.index('{\n  "record"') :])


def fake_distiller_factory(root: Path):
    def build(project_root: str, top_k: Optional[int] = None) -> KnowledgeDistiller:
        return KnowledgeDistiller(FakeService(), RecordStore(str(root)), related_top_k=top_k or 4)

    return build


class TestConfig:
    def test_default_models(self):
        clean_env = {"OPENAI_API_KEY": "test-key"}
        with patch.dict(os.environ, clean_env, clear=True):
            config = Config()
            assert config.llm_model == "gpt-4o-mini"
            assert config.embedding_model == "text-embedding-3-small"
            assert config.openai_base_url is None
            assert config.is_reasoning_model is False
            assert config.model_temperature == 0.2
            assert config.openai_timeout == 60
            assert config.max_retries == 3
            assert config.related_top_k == 4

    def test_invalid_values_fall_back(self):
        env = {"MODEL_TEMPERATURE": "5", "OPENAI_TIMEOUT": "soon", "RELATED_TOP_K": "many"}
        with patch.dict(os.environ, env, clear=True):
            config = Config()
            assert config.model_temperature == 0.2
            assert config.openai_timeout == 60
            assert config.related_top_k == 4

    def test_missing_api_key(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError):
                _ = Config().openai_api_key


def test_load_project_env_prefers_project_scoped_over_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, isolated_api_key):
    """The project-scoped env is loaded, not the CWD .env, and the client uses its key."""
    project_root = tmp_path / "proj"
    other_cwd = tmp_path / "cwd"
    other_cwd.mkdir()
    write_file(other_cwd / ".env", "OPENAI_API_KEY=cwd-key\n")
    write_file(project_root / ".cognize" / ".env", "OPENAI_API_KEY=project-key\n")
    monkeypatch.chdir(other_cwd)

    loaded = load_project_env(project_root=str(project_root))
    assert loaded == str(project_root / ".cognize" / ".env")
    assert os.getenv("OPENAI_API_KEY") == "project-key"

    import cognize.core.config as config_mod

    monkeypatch.setattr(config_mod, "OpenAI", DummyOpenAI, raising=True)
    client = get_client()
    assert isinstance(client, DummyOpenAI)
    assert client.api_key == "project-key"
    assert client.timeout == 60


def test_get_client_without_key_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, isolated_api_key):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
        get_client()


def test_ensure_project_env_copies_or_templates(tmp_path: Path):
    project_with_env = tmp_path / "proj_with_env"
    write_file(project_with_env / ".env", "LLM_MODEL=foo\nOPENAI_API_KEY=xyz\n")

    path1 = ensure_project_env(str(project_with_env))
    content1 = path1.read_text(encoding="utf-8")
    assert "LLM_MODEL=foo" in content1
    assert "OPENAI_API_KEY=xyz" in content1

    project_no_env = tmp_path / "proj_no_env"
    project_no_env.mkdir()

    path2 = ensure_project_env(str(project_no_env))
    content2 = path2.read_text(encoding="utf-8")
    assert "Project-scoped environment for cognize" in content2
    assert "EMBEDDING_MODEL" in content2
    assert get_project_env_path(str(project_no_env)) == path2

    # Existing file is preserved unless overwrite is requested
    path2.write_text("LLM_MODEL=kept\n", encoding="utf-8")
    assert ensure_project_env(str(project_no_env)).read_text(encoding="utf-8") == "LLM_MODEL=kept\n"


class TestCli:
    def test_distill_json_output(self, tmp_path: Path):
        seed_store(tmp_path)
        runner = CliRunner()
        with patch("cognize.main._build_distiller", fake_distiller_factory(tmp_path)), patch("cognize.main.pyperclip.copy"):
            result = runner.invoke(app, ["distill", "--text", "new note", "--format", "json", "--project-root", str(tmp_path)])

        assert result.exit_code == 0, result.stdout
        payload = json_tail(result.stdout)
        assert payload["record"]["analysis"]["conclusion"] == "insight: new note"
        assert "embedding" not in payload["record"]
        assert payload["related"][0]["recordId"] == "past0001abcdef"
        assert payload["related"][0]["relationType"] == "Similar"
        assert len(RecordStore(str(tmp_path)).list_all()) == 2

    def test_distill_rich_output_copies_conclusion(self, tmp_path: Path):
        runner = CliRunner()
        with patch("cognize.main._build_distiller", fake_distiller_factory(tmp_path)), patch("cognize.main.pyperclip.copy") as mock_copy:
            result = runner.invoke(app, ["distill", "--text", "first note", "--project-root", str(tmp_path)])

        assert result.exit_code == 0, result.stdout
        assert "insight: first note" in result.stdout
        mock_copy.assert_called_once_with("insight: first note")

    def test_distill_from_file(self, tmp_path: Path):
        note = tmp_path / "note.txt"
        note.write_text("from a file", encoding="utf-8")
        runner = CliRunner()
        with patch("cognize.main._build_distiller", fake_distiller_factory(tmp_path)), patch("cognize.main.pyperclip.copy"):
            result = runner.invoke(app, ["distill", "--file", str(note), "--format", "json", "--project-root", str(tmp_path)])

        assert result.exit_code == 0, result.stdout
        assert json_tail(result.stdout)["record"]["originalText"] == "from a file"

    def test_distill_requires_exactly_one_input(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(app, ["distill", "--project-root", str(tmp_path)])
        assert result.exit_code == 1
        assert "Must specify either --text or --file" in result.stdout

        result = runner.invoke(app, ["distill", "--text", "a", "--file", "b", "--project-root", str(tmp_path)])
        assert result.exit_code == 1

    def test_distill_config_error(self, tmp_path: Path):
        runner = CliRunner()
        with patch("cognize.main._build_distiller", side_effect=ConfigError("OPENAI_API_KEY not found")):
            result = runner.invoke(app, ["distill", "--text", "note", "--project-root", str(tmp_path)])

        assert result.exit_code == 1
        assert "Configuration Error" in result.stdout

    def test_search_and_decide(self, tmp_path: Path):
        seed_store(tmp_path)
        runner = CliRunner()
        with patch("cognize.main._build_distiller", fake_distiller_factory(tmp_path)):
            search_result = runner.invoke(app, ["search", "focus", "--project-root", str(tmp_path)])
            decide_result = runner.invoke(app, ["decide", "Should I focus?", "--project-root", str(tmp_path)])

        assert search_result.exit_code == 0, search_result.stdout
        assert "Focus beats multitasking" in search_result.stdout
        assert decide_result.exit_code == 0, decide_result.stdout
        assert "lens: Should I focus?" in decide_result.stdout

    def test_related_command(self, tmp_path: Path):
        store = seed_store(tmp_path)
        store.append(
            KnowledgeRecord(
                id="other",
                timestamp=1_700_000_100_000,
                original_text="another",
                analysis=Insight(conclusion="Deep work needs long blocks"),
                embedding=[1.0, 0.0],
            )
        )
        runner = CliRunner()
        with patch("cognize.main._build_distiller", fake_distiller_factory(tmp_path)):
            result = runner.invoke(app, ["related", "other", "--project-root", str(tmp_path)])

        assert result.exit_code == 0, result.stdout
        assert "Focus beats multitasking" in result.stdout
        assert "Similar" in result.stdout

    def test_list_review_and_clear(self, tmp_path: Path):
        seed_store(tmp_path)
        runner = CliRunner()

        list_result = runner.invoke(app, ["list", "--project-root", str(tmp_path)])
        assert list_result.exit_code == 0
        assert "past0001" in list_result.stdout

        review_result = runner.invoke(app, ["review", "--project-root", str(tmp_path)])
        assert review_result.exit_code == 0
        assert "Focus beats multitasking" in review_result.stdout

        clear_result = runner.invoke(app, ["clear", "--yes", "--project-root", str(tmp_path)])
        assert clear_result.exit_code == 0
        assert RecordStore(str(tmp_path)).list_all() == []

        empty_result = runner.invoke(app, ["list", "--project-root", str(tmp_path)])
        assert "No insights stored yet" in empty_result.stdout

    def test_init_creates_project_env(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(app, ["init", "--project-root", str(tmp_path)])

        assert result.exit_code == 0, result.stdout
        assert (tmp_path / ".cognize" / ".env").exists()
