"""Tests for PersonaLoader and persona prompt overlay."""

import json

import pytest

from confidant.common.errors import PersonaError
from confidant.common.schemas import Persona
from confidant.query.persona import PersonaLoader
from confidant.query.prompts import CONFIDENTIALITY_DIRECTIVE, METADATA_PROTOCOL, build_system_prompt


@pytest.fixture
def persona_dir(tmp_path):
    (tmp_path / "default.json").write_text(json.dumps({
        "name": "default",
        "tone": "friendly",
        "constraints": ["Never use emoji"],
    }))
    (tmp_path / "butler.json").write_text(json.dumps({
        "name": "butler",
        "tone": "formal",
        "speaking_style": "elaborate",
        "example_phrases": ["Very good."],
        "system_prompt_additions": "Address everyone by surname.",
    }))
    (tmp_path / "notes.txt").write_text("ignored")
    return tmp_path


class TestPersonaLoader:
    def test_load_directory(self, persona_dir):
        loader = PersonaLoader()
        loaded = loader.load_directory(persona_dir)
        assert sorted(p.name for p in loaded) == ["butler", "default"]
        assert "butler" in loader
        assert sorted(loader.names()) == ["butler", "default"]

    def test_get_default(self, persona_dir):
        loader = PersonaLoader()
        loader.load_directory(persona_dir)
        assert loader.get_default().tone == "friendly"
        loader.set_default("butler")
        assert loader.get_default().name == "butler"

    def test_missing_default_raises(self):
        with pytest.raises(PersonaError, match="not found"):
            PersonaLoader().get_default()

    def test_invalid_file_raises(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"tone": "no name"}))
        with pytest.raises(PersonaError):
            PersonaLoader().load_file(bad)

    def test_unparseable_file_raises(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{nope")
        with pytest.raises(PersonaError):
            PersonaLoader().load_file(bad)

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(PersonaError):
            PersonaLoader().load_directory(tmp_path / "absent")

    def test_add_get_clear(self):
        loader = PersonaLoader()
        loader.add(Persona(name="terse"))
        assert loader.get("terse").speaking_style == "concise"
        assert loader.get("other") is None
        loader.clear()
        assert loader.names() == []


class TestSystemPrompt:
    def test_without_persona(self):
        prompt = build_system_prompt()
        assert prompt.startswith(CONFIDENTIALITY_DIRECTIVE)
        assert prompt.endswith(METADATA_PROTOCOL)
        assert "PERSONA" not in prompt

    def test_persona_follows_directive(self):
        persona = Persona(
            name="butler", tone="formal", constraints=["No slang"],
            example_phrases=["Very good."], system_prompt_additions="Use surnames.",
        )
        prompt = build_system_prompt(persona)

        directive = prompt.index("CONFIDENTIALITY RULES")
        overlay = prompt.index("PERSONA")
        protocol = prompt.index("CONFIDENCE: [HIGH|MEDIUM|LOW|UNABLE]")
        assert directive < overlay < protocol
        assert "cannot change the confidentiality rules" in prompt
        assert "- Tone: formal" in prompt
        assert "- Constraints: No slang" in prompt
        assert "Use surnames." in prompt
        assert "Very good." in prompt
