"""
Tests for coral-agent.toml enrichment.
"""

import logging

import tomlkit

from conftest import AGENT_TOML
from coralizer import AgentOption
from coralizer.manifest import enrich_manifest


def _manifest(tmp_path, contents=AGENT_TOML):
    path = tmp_path / "coral-agent.toml"
    path.write_text(contents)
    return path


def _load(path):
    return tomlkit.parse(path.read_text())


class TestEnrichManifest:
    def test_sets_name_description_and_options(self, tmp_path):
        path = _manifest(tmp_path)
        warnings = enrich_manifest(path, "my-agent", "Searches the web.", [AgentOption("API_KEY")])

        assert warnings == []
        doc = _load(path)
        assert doc["agent"]["name"] == "my-agent"
        assert doc["agent"]["description"] == "Searches the web."
        assert doc["agent"]["version"] == "0.1.0"
        assert doc["options"]["API_KEY"] == {"type": "string", "required": True}
        assert doc["options"]["MODEL_API_KEY"] == {"type": "string", "required": True}

    def test_option_written_as_inline_table(self, tmp_path):
        path = _manifest(tmp_path)
        enrich_manifest(path, "a", "d", [AgentOption("API_KEY")])
        assert 'API_KEY = {type = "string", required = true}' in path.read_text()

    def test_no_options_leaves_table_alone(self, tmp_path):
        path = _manifest(tmp_path)
        enrich_manifest(path, "a", "d", [])
        assert list(_load(path)["options"]) == ["MODEL_API_KEY"]

    def test_last_declaration_wins(self, tmp_path):
        path = _manifest(tmp_path)
        enrich_manifest(
            path,
            "a",
            "d",
            [AgentOption("TOKEN", description="first"), AgentOption("TOKEN", description="second")],
        )
        assert _load(path)["options"]["TOKEN"]["description"] == "second"

    def test_missing_agent_table(self, tmp_path, caplog):
        path = _manifest(tmp_path, '[options]\n')
        with caplog.at_level(logging.WARNING):
            warnings = enrich_manifest(path, "a", "d", [AgentOption("API_KEY")])

        assert warnings == ["No [agent] table found in coral-agent.toml!"]
        assert "[agent]" in caplog.text
        assert "API_KEY" in _load(path)["options"]

    def test_missing_name_key(self, tmp_path):
        path = _manifest(tmp_path, '[agent]\nversion = "1"\n\n[options]\n')
        warnings = enrich_manifest(path, "a", "described", [])

        assert warnings == ["No agent.name key found in coral-agent.toml!"]
        doc = _load(path)
        assert "name" not in doc["agent"]
        assert doc["agent"]["description"] == "described"

    def test_missing_options_table(self, tmp_path):
        path = _manifest(tmp_path, '[agent]\nname = "x"\n')
        warnings = enrich_manifest(path, "a", "d", [AgentOption("API_KEY")])

        assert warnings == ["No [options] table found in coral-agent.toml!"]
        assert _load(path)["agent"]["name"] == "a"

    def test_unparseable_manifest(self, tmp_path):
        path = _manifest(tmp_path, "[agent\nname = \n")
        warnings = enrich_manifest(path, "a", "d", [])

        assert len(warnings) == 1
        assert warnings[0].startswith("Could not read coral-agent.toml")
        assert path.read_text() == "[agent\nname = \n"

    def test_comments_preserved(self, tmp_path):
        path = _manifest(tmp_path, "# keep me\n" + AGENT_TOML)
        enrich_manifest(path, "a", "d", [])
        assert path.read_text().startswith("# keep me\n")
