"""
Unit tests for models.metadata module.

Tests:
- UserMetadata.from_content() lenient parsing
- from_event() carries pubkey and created_at
- to_content() skips empty fields
- best_name fallback chain
"""

import json

import pytest
from fixtures.events import PUBKEY_A, make_profile

from pomostr.models.metadata import UserMetadata


class TestFromContent:
    """UserMetadata.from_content()."""

    def test_all_fields(self) -> None:
        content = json.dumps(
            {
                "name": "alice",
                "display_name": "Alice",
                "about": "focus",
                "picture": "https://p",
                "banner": "https://b",
                "nip05": "alice@example.com",
                "lud16": "alice@ln.example",
                "website": "https://alice.example",
            }
        )
        meta = UserMetadata.from_content(PUBKEY_A, content, 5)
        assert meta.name == "alice"
        assert meta.display_name == "Alice"
        assert meta.website == "https://alice.example"
        assert meta.created_at == 5

    def test_invalid_json_yields_empty_fields(self) -> None:
        meta = UserMetadata.from_content(PUBKEY_A, "{broken", 1)
        assert meta == UserMetadata(PUBKEY_A, created_at=1)

    def test_non_object_json_yields_empty_fields(self) -> None:
        assert UserMetadata.from_content(PUBKEY_A, "[1,2]", 1).name is None

    def test_non_string_and_blank_values_dropped(self) -> None:
        meta = UserMetadata.from_content(PUBKEY_A, '{"name": 42, "about": "   "}', 1)
        assert meta.name is None
        assert meta.about is None

    def test_legacy_display_name_key(self) -> None:
        meta = UserMetadata.from_content(PUBKEY_A, '{"displayName": "Legacy"}', 1)
        assert meta.display_name == "Legacy"

    def test_empty_content(self) -> None:
        assert UserMetadata.from_content(PUBKEY_A, "", 1).best_name == "aaaaaaaaaaaa..."

    def test_from_event(self) -> None:
        meta = UserMetadata.from_event(make_profile(PUBKEY_A, '{"name":"a"}', created_at=9))
        assert meta.pubkey == PUBKEY_A
        assert meta.created_at == 9
        assert meta.name == "a"


class TestToContent:
    """UserMetadata.to_content()."""

    def test_skips_none_fields(self) -> None:
        meta = UserMetadata(PUBKEY_A, name="alice", about="hi")
        assert json.loads(meta.to_content()) == {"name": "alice", "about": "hi"}

    def test_parses_back(self) -> None:
        meta = UserMetadata(PUBKEY_A, display_name="Ä", nip05="a@b.c", created_at=3)
        assert UserMetadata.from_content(PUBKEY_A, meta.to_content(), 3) == meta


class TestBestName:
    """UserMetadata.best_name fallback."""

    def test_display_name_first(self) -> None:
        assert UserMetadata(PUBKEY_A, name="n", display_name="D").best_name == "D"

    def test_name_second(self) -> None:
        assert UserMetadata(PUBKEY_A, name="n").best_name == "n"

    def test_pubkey_prefix_last(self) -> None:
        assert UserMetadata(PUBKEY_A).best_name == PUBKEY_A[:12] + "..."


class TestValidation:
    """UserMetadata.__post_init__()."""

    def test_invalid_pubkey(self) -> None:
        with pytest.raises(ValueError, match="pubkey"):
            UserMetadata("npub1xyz")

    def test_negative_created_at(self) -> None:
        with pytest.raises(ValueError, match="created_at"):
            UserMetadata(PUBKEY_A, created_at=-1)
