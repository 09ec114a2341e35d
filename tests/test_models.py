"""Tests for pack models: event kinds, skip suffix, metadata parsing."""

from soundpacks.packs.models import (
    EVENT_DIRS,
    EventKind,
    Manifest,
    ManifestEntry,
    PackMetadata,
    audio_extension,
    default_pack_name,
    is_audio_name,
    parse_event,
    split_skip,
    with_skip,
)


class TestEventKind:
    def test_seven_fixed_kinds(self):
        assert len(EventKind) == 7
        assert EVENT_DIRS == {
            "session-start",
            "prompt-submit",
            "notification",
            "stop",
            "session-end",
            "subagent-stop",
            "tool-failure",
        }

    def test_hook_event_names(self):
        assert EventKind.PROMPT_SUBMIT.hook_event_name == "UserPromptSubmit"
        assert EventKind.TOOL_FAILURE.hook_event_name == "PostToolUseFailure"
        assert len({e.hook_event_name for e in EventKind}) == 7

    def test_display_name(self):
        assert EventKind.SUBAGENT_STOP.display_name == "Subagent Stop"
        assert EventKind.STOP.display_name == "Stop"

    def test_parse_event(self):
        assert parse_event("stop") is EventKind.STOP
        assert parse_event("Stop") is None


class TestSkipSuffix:
    def test_split_plain(self):
        assert split_skip("boom.wav") == ("boom.wav", False)

    def test_split_skipped(self):
        assert split_skip("boom.wav.disabled") == ("boom.wav", True)

    def test_inner_disabled_is_not_skip(self):
        assert split_skip("boom.disabled.wav") == ("boom.disabled.wav", False)

    def test_with_skip_round_trip(self):
        skipped = with_skip("boom.wav", True)
        assert skipped == "boom.wav.disabled"
        assert with_skip(skipped, False) == "boom.wav"

    def test_with_skip_idempotent(self):
        assert with_skip("boom.wav.disabled", True) == "boom.wav.disabled"

    def test_bare_suffix_is_a_name(self):
        assert split_skip(".disabled") == (".disabled", False)


class TestAudioNames:
    def test_allowed_extensions(self):
        for name in ("a.wav", "a.MP3", "a.aiff", "a.m4a", "a.ogg", "a.aac"):
            assert is_audio_name(name), name

    def test_skipped_audio_is_audio(self):
        assert is_audio_name("a.wav.disabled")
        assert audio_extension("a.OGG.disabled") == "ogg"

    def test_rejects_other_files(self):
        for name in ("evil.sh", "readme", ".wav", "x.wav.sh", "x.sh.disabled"):
            assert not is_audio_name(name), name


class TestManifestModel:
    def test_get_by_id(self):
        m = Manifest(entries=[ManifestEntry(id="a"), ManifestEntry(id="b")])
        assert m.get("b").id == "b"
        assert m.get("c") is None
        assert m.ids == ["a", "b"]

    def test_to_dict_uses_wire_keys(self):
        m = Manifest(format_version="2", entries=[ManifestEntry(id="a", file_count=3)])
        data = m.to_dict()
        assert data["version"] == "2"
        assert data["packs"][0]["file_count"] == 3
        assert "download_url" in data["packs"][0]


class TestPackMetadata:
    def test_from_dict_ignores_non_strings(self):
        meta = PackMetadata.from_dict({"name": "Retro", "version": 2, "extra": "x"})
        assert meta.name == "Retro"
        assert meta.version == ""

    def test_is_empty(self):
        assert PackMetadata().is_empty()
        assert not PackMetadata(author="me").is_empty()

    def test_default_pack_name(self):
        assert default_pack_name("retro-arcade") == "Retro Arcade"
