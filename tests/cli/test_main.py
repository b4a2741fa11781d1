"""CLI command tests using Click CliRunner.

Strategy: point --config at a tmp YAML so stores live under tmp_path, and
patch build_orchestrator where the interview needs a scripted provider.
"""

from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from conftest import PROFILE_JSON, FakeProvider, completion_result
from cli.main import _resolve_answer, cli
from cli.utils import build_orchestrator
from cli.config import load_config_model
from sessions import SessionStore
from synthesis.models import GeneratedProfile
from synthesis.storage import ProfileStore

REPLY = """Got it. What does your morning routine look like?

[SUGGESTIONS]
- Cleanser, moisturizer and sunscreen
- Just water and a moisturizer
- Nothing at all in the mornings
[/SUGGESTIONS]"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "llm": {"api_key": "sk-ant-very-secret"},
                "paths": {
                    "sessions_db": str(tmp_path / "sessions.db"),
                    "profiles_db": str(tmp_path / "profiles.db"),
                    "cache_db": str(tmp_path / "cache.db"),
                    "log_file": str(tmp_path / "skinpassport.log"),
                },
                "enrichment": {"enabled": False},
                "retry": {"llm_attempts": 1, "min_wait": 0, "llm_max_wait": 0},
            }
        )
    )
    return path


def _invoke(runner, config_file, *args, **kwargs):
    return runner.invoke(cli, ["--config", str(config_file), *args], **kwargs)


class TestResolveAnswer:
    def test_number_picks_suggestion(self):
        assert _resolve_answer(" 2 ", ["a", "b"]) == "b"

    def test_out_of_range_number_is_literal(self):
        assert _resolve_answer("3", ["a", "b"]) == "3"

    def test_text_passes_through(self):
        assert _resolve_answer("  oily  ", ["a"]) == "oily"


class TestConfig:
    def test_masks_api_key(self, runner, config_file):
        result = _invoke(runner, config_file, "config")
        assert result.exit_code == 0
        assert "sk-ant-very-secret" not in result.output
        assert "api_key: '***'" in result.output

    def test_invalid_yaml_exits(self, runner, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("llm: [unclosed")
        result = runner.invoke(cli, ["--config", str(bad), "config"])
        assert result.exit_code == 1
        assert "Config error" in result.output


class TestProfileCommands:
    def test_show_missing_profile(self, runner, config_file):
        result = _invoke(runner, config_file, "profile", "show", "nope")
        assert result.exit_code == 1
        assert "No profile" in result.output

    def test_show_json(self, runner, config_file, tmp_path):
        profile = GeneratedProfile.model_validate_json(PROFILE_JSON)
        profile_id = ProfileStore(tmp_path / "profiles.db").save(profile, owner_id="u1")

        result = _invoke(runner, config_file, "profile", "show", profile_id, "--json")

        assert result.exit_code == 0
        assert '"skin_type": "combination"' in result.output

    def test_show_brief(self, runner, config_file, tmp_path):
        profile = GeneratedProfile.model_validate_json(PROFILE_JSON)
        profile_id = ProfileStore(tmp_path / "profiles.db").save(profile)

        result = _invoke(runner, config_file, "profile", "show", profile_id, "--brief")

        assert result.exit_code == 0
        assert "Skin type: combination | Concerns: breakouts, oily t-zone" in result.output

    def test_model_text_with_markup_is_printed_literally(self, runner, config_file, tmp_path):
        profile = GeneratedProfile.model_validate_json(PROFILE_JSON).model_copy(
            update={
                "skin_concerns": ["redness [/bold]"],
                "key_recommendations": ["Patch test [/] first"],
            }
        )
        profile_id = ProfileStore(tmp_path / "profiles.db").save(profile)

        result = _invoke(runner, config_file, "profile", "show", profile_id)

        assert result.exit_code == 0
        assert "redness [/bold]" in result.output
        assert "Patch test [/] first" in result.output

    def test_latest_renders_panel(self, runner, config_file, tmp_path):
        profile = GeneratedProfile.model_validate_json(PROFILE_JSON)
        ProfileStore(tmp_path / "profiles.db").save(profile, owner_id="u1")

        result = _invoke(runner, config_file, "profile", "latest", "u1")

        assert result.exit_code == 0
        assert "combination" in result.output
        assert "Add a BHA" in result.output


class TestSessionCommands:
    def test_show_and_abandon(self, runner, config_file, tmp_path):
        store = SessionStore(tmp_path / "sessions.db")
        session = store.create(owner_id="u1")

        shown = _invoke(runner, config_file, "session", "show", session.token)
        assert shown.exit_code == 0
        assert session.token in shown.output
        assert "active" in shown.output

        abandoned = _invoke(runner, config_file, "session", "abandon", session.token)
        assert abandoned.exit_code == 0
        assert store.peek(session.token).status == "abandoned"

    def test_show_missing(self, runner, config_file):
        result = _invoke(runner, config_file, "session", "show", "session_0_missing")
        assert result.exit_code == 1

    def test_list_empty(self, runner, config_file):
        result = _invoke(runner, config_file, "session", "list", "nobody")
        assert result.exit_code == 0
        assert "No sessions" in result.output


class TestInterview:
    @pytest.fixture
    def provider(self):
        return FakeProvider()

    @pytest.fixture
    def scripted(self, provider, config_file):
        orch = build_orchestrator(load_config_model(config_file), provider=provider)
        with patch("cli.main.build_orchestrator", return_value=orch):
            yield orch

    def test_quit_prints_resume_token(self, runner, config_file, provider, scripted):
        provider.queue(REPLY)

        result = _invoke(runner, config_file, "interview", input="my skin is oily\nquit\n")

        assert result.exit_code == 0
        assert "What does your morning routine look like?" in result.output
        assert "Just water and a moisturizer" in result.output
        assert "Resume token: session_" in result.output

    def test_number_sends_suggestion(self, runner, config_file, provider, scripted):
        provider.queue(REPLY, "Thanks. Anything else?")

        _invoke(runner, config_file, "interview", input="oily\n2\nquit\n")

        sent = provider.calls[1]["messages"][-1]["content"]
        assert sent == "Just water and a moisturizer"

    def test_completion_renders_profile(self, runner, config_file, provider, scripted):
        provider.queue(completion_result(), PROFILE_JSON)

        result = _invoke(runner, config_file, "interview", "--owner", "u1", input="that's it\n")

        assert result.exit_code == 0
        assert "Skin profile" in result.output
        assert "combination" in result.output
        assert scripted.profiles.latest_for_owner("u1") is not None
