"""
Unit tests for the board-rag CLI and runtime assembly.
"""

import json

import pytest

from rag.cli.board_cli import UnitManifest, build_parser, index_manifest, main
from rag.core.config import RagConfig
from rag.prompts.board_chat import EMPTY_BOARD_SUMMARY
from rag.providers.ollama_client import OllamaClient
from rag.runtime import RagRuntime
from vector.store import InMemoryVectorStore


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep CLI log handlers off the captured stdout."""
    monkeypatch.setattr("rag.cli.board_cli.configure_logging", lambda **kwargs: None)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "rag.yaml"
    path.write_text("embedding:\n  dimensions: 64\n", encoding="utf-8")
    return path


@pytest.fixture
def manifest_file(tmp_path):
    (tmp_path / "notes").mkdir()
    (tmp_path / "notes" / "u2.txt").write_text("Quarterly revenue grew", encoding="utf-8")
    path = tmp_path / "units.json"
    path.write_text(json.dumps({
        "version": "1.0",
        "units": [
            {"unit_id": "U1", "board_id": "B1", "text": "The quick brown fox. The fox jumps."},
            {"unit_id": "U2", "board_id": "B1", "path": "notes/u2.txt"},
        ],
        "groups": {"B1": {"G-fox": ["U1"]}},
    }), encoding="utf-8")
    return path


@pytest.fixture
def make_factory(provider_factory, generator_factory):
    """Build runtime factories over fake providers and an in-memory store."""
    def make(fail_on=None):
        def factory(config, group_resolver=None):
            return RagRuntime(
                config,
                provider_factory(fail_on=fail_on),
                generator_factory(),
                InMemoryVectorStore(),
                group_resolver=group_resolver,
            )
        return factory
    return make


def run(argv, factory, config_file, env_file):
    return main(["--config", str(config_file), "--env-file", str(env_file)] + argv, runtime_factory=factory)


class TestUnitManifest:
    """Tests for UnitManifest."""

    def test_from_file(self, manifest_file):
        manifest = UnitManifest.from_file(str(manifest_file))

        assert len(manifest.units) == 2
        assert manifest.groups == {"B1": {"G-fox": ["U1"]}}
        assert manifest.load_text(manifest.units[1]) == "Quarterly revenue grew"

    def test_unit_without_text(self):
        manifest = UnitManifest.from_dict({"units": [{"unit_id": "U1", "board_id": "B1"}]})

        with pytest.raises(ValueError):
            manifest.load_text(manifest.units[0])


class TestIndexManifest:
    """Tests for index_manifest."""

    def test_missing_file_reported(self, tmp_path, clean_rag_env, make_factory):
        config = RagConfig(env_file=clean_rag_env, overrides={"embedding": {"dimensions": 64}})
        manifest = UnitManifest.from_dict({
            "units": [{"unit_id": "U1", "board_id": "B1", "path": "gone.txt"}],
        })
        manifest.base_dir = tmp_path

        with make_factory()(config) as runtime:
            result = index_manifest(runtime, manifest)

        assert result["indexed"] == []
        assert result["failed"][0]["unit_id"] == "U1"


class TestMain:
    """Tests for the CLI entry point."""

    def test_parser_commands(self):
        args = build_parser().parse_args(
            ["ask", "--board-id", "B1", "--query", "fox?", "--unit-id", "U1", "--unit-id", "U2"]
        )

        assert args.command == "ask"
        assert args.unit_ids == ["U1", "U2"]
        assert args.group_ids is None

    def test_no_command(self, make_factory, config_file, clean_rag_env):
        assert run([], make_factory(), config_file, clean_rag_env) == 2

    def test_bad_config(self, make_factory, tmp_path, clean_rag_env):
        assert run(["summary", "--board-id", "B1"], make_factory(), tmp_path / "nope.yaml", clean_rag_env) == 2

    def test_missing_manifest(self, make_factory, config_file, clean_rag_env, tmp_path):
        code = run(
            ["index", "--manifest", str(tmp_path / "nope.json")],
            make_factory(), config_file, clean_rag_env,
        )

        assert code == 2

    def test_index(self, make_factory, config_file, manifest_file, clean_rag_env, capsys):
        code = run(["index", "--manifest", str(manifest_file)], make_factory(), config_file, clean_rag_env)

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert [item["unit_id"] for item in output["indexed"]] == ["U1", "U2"]
        assert output["failed"] == []

    def test_index_failure(self, make_factory, config_file, manifest_file, clean_rag_env, capsys):
        code = run(
            ["index", "--manifest", str(manifest_file), "--retries", "2"],
            make_factory(fail_on=["revenue"]), config_file, clean_rag_env,
        )

        output = json.loads(capsys.readouterr().out)
        assert code == 1
        assert [item["unit_id"] for item in output["indexed"]] == ["U1"]
        failure = output["failed"][0]
        assert failure["unit_id"] == "U2"
        assert failure["attempts"] == 2
        assert failure["reason"].startswith("embed:")

    def test_ask(self, make_factory, config_file, manifest_file, clean_rag_env, capsys):
        code = run(
            ["ask", "--board-id", "B1", "--query", "What does the fox do?", "--manifest", str(manifest_file)],
            make_factory(), config_file, clean_rag_env,
        )

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert output["answer"] == "scripted answer"
        assert output["sources"][0]["unit_id"] == "U1"
        assert output["context_truncated"] is False

    def test_ask_with_group(self, make_factory, config_file, manifest_file, clean_rag_env, capsys):
        code = run(
            ["ask", "--board-id", "B1", "--query", "revenue", "--group-id", "G-fox",
             "--manifest", str(manifest_file)],
            make_factory(), config_file, clean_rag_env,
        )

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert {source["unit_id"] for source in output["sources"]} == {"U1"}

    def test_ask_blank_query(self, make_factory, config_file, clean_rag_env):
        code = run(["ask", "--board-id", "B1", "--query", " "], make_factory(), config_file, clean_rag_env)

        assert code == 1

    def test_summary_empty_board(self, make_factory, config_file, clean_rag_env, capsys):
        code = run(["summary", "--board-id", "B1"], make_factory(), config_file, clean_rag_env)

        assert code == 0
        assert capsys.readouterr().out.strip() == EMPTY_BOARD_SUMMARY

    def test_summary(self, make_factory, config_file, manifest_file, clean_rag_env, capsys):
        code = run(
            ["summary", "--board-id", "B1", "--manifest", str(manifest_file)],
            make_factory(), config_file, clean_rag_env,
        )

        assert code == 0
        assert capsys.readouterr().out.strip() == "scripted answer"


class TestRagRuntime:
    """Tests for runtime assembly."""

    def test_from_config(self, clean_rag_env):
        config = RagConfig(env_file=clean_rag_env, overrides={"embedding": {"dimensions": 64}})

        with RagRuntime.from_config(config) as runtime:
            assert isinstance(runtime.embedding_provider, OllamaClient)
            assert runtime.embedding_provider.model == "nomic-embed-text"
            assert runtime.generator.model == "llama3.2"
            assert isinstance(runtime.store, InMemoryVectorStore)
            assert runtime.store.dimensions == 64
            assert runtime.embedder.dimensions == 64

    def test_close_releases_components(self, clean_rag_env, provider_factory, generator_factory):
        config = RagConfig(env_file=clean_rag_env, overrides={"embedding": {"dimensions": 64}})
        provider = provider_factory()
        generator = generator_factory()

        runtime = RagRuntime(config, provider, generator, InMemoryVectorStore())
        runtime.close()

        assert provider.closed is True
        assert generator.closed is True
        with pytest.raises(RuntimeError):
            runtime.pipeline.on_unit_deleted("U1")
