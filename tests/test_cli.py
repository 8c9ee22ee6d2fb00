"""Test cli - Content Architect."""
from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from content_architect.cli import _build_cli_parser, main
from content_architect.composer import DEFAULT_CONTENT_PROMPT, FORMATTING_REQUIREMENTS
from tests.conftest import SAMPLE_OUTLINE_REPLY, FakeTextGenerator

GENERATED = {
    "success": True,
    "token": "aca_generated_alice_1760000000",
    "errors": [],
    "data": {
        "title": "Complete Guide to Home Composting",
        "slug": "home-composting-2026",
        "outline": ["Introduction", "Conclusion"],
        "internal_links_added": 1,
        "external_links_added": 2,
        "content_images": [{}],
        "featured_image": {"local_ref": "a.png"},
        "excerpt": "Home composting turns scraps into soil.",
    },
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in ("ACA_TEXT_PROVIDER", "ACA_IMAGE_PROVIDER", "ACA_CACHE_TTL_SECONDS"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("ACA_CACHE_PATH", str(tmp_path / "cache.json"))


@pytest.mark.unit
class TestParser:

    def test_apply_defaults(self):
        args = _build_cli_parser().parse_args(["apply", "tok"])
        assert args.token == "tok"
        assert args.target == 0
        assert args.json is False

    def test_generate_identity(self):
        args = _build_cli_parser().parse_args(["generate", "compost", "--identity", "alice"])
        assert args.identity == "alice"


@pytest.mark.unit
class TestCommands:

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 2
        assert "usage" in capsys.readouterr().out.lower()

    def test_prompt(self, capsys):
        assert main(["prompt"]) == 0
        out = capsys.readouterr().out
        assert DEFAULT_CONTENT_PROMPT.strip() in out
        assert "FORMATTING REQUIREMENTS" not in out

    def test_prompt_full(self, capsys):
        assert main(["prompt", "--full"]) == 0
        assert FORMATTING_REQUIREMENTS.strip() in capsys.readouterr().out

    def test_generate(self, capsys):
        with patch("content_architect.cli.ArchitectService") as service_cls:
            service_cls.return_value.start_generation = AsyncMock(return_value=GENERATED)
            assert main(["generate", "home composting", "--identity", "alice"]) == 0
        service_cls.return_value.start_generation.assert_awaited_once_with("home composting", "alice")
        out = capsys.readouterr().out
        assert "Token:   aca_generated_alice_1760000000" in out
        assert "Links:   1 internal, 2 external" in out

    def test_apply_json(self, capsys):
        result = {"success": False, "message": "", "errors": ["Generated content not found or expired"]}
        with patch("content_architect.cli.ArchitectService") as service_cls:
            service_cls.return_value.apply_generation = AsyncMock(return_value=result)
            assert main(["apply", "tok", "--target", "4", "--json"]) == 1
        service_cls.return_value.apply_generation.assert_awaited_once_with("tok", 4)
        captured = capsys.readouterr()
        assert json.loads(captured.out) == result
        assert "not found" in captured.err

    def test_outline(self, capsys):
        with patch("content_architect.cli.build_text_generator", return_value=FakeTextGenerator([SAMPLE_OUTLINE_REPLY])):
            assert main(["outline", "home composting"]) == 0
        body = json.loads(capsys.readouterr().out)
        assert body["outline"][0] == "Introduction"
        assert "Home Composting" in body["title"]

    def test_missing_settings_file(self, tmp_path, capsys):
        assert main(["--settings", str(tmp_path / "missing.json"), "prompt"]) == 0
        assert main(["--settings", str(tmp_path / "missing.json"), "outline", "x"]) == 1
        assert "Settings file not found" in capsys.readouterr().err
