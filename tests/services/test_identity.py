"""Tests for id generation and id shape checks."""

from __future__ import annotations

import re
from unittest.mock import patch

from syncrelay.services.identity import ID_LENGTH, generate_id, validate_id

HEX_ID = re.compile(r"^[0-9a-f]{16}$")


class TestGenerateId:
    def test_sixteen_lowercase_hex_chars(self):
        assert HEX_ID.match(generate_id())

    def test_many_ids_pairwise_distinct(self):
        live: set[str] = set()
        for _ in range(2000):
            new_id = generate_id(live)
            assert HEX_ID.match(new_id)
            assert new_id not in live
            live.add(new_id)
        assert len(live) == 2000

    def test_retries_on_collision(self):
        """A colliding draw is discarded and the next unique one returned."""
        taken = "a" * ID_LENGTH
        with patch(
            "syncrelay.services.identity.secrets.token_hex",
            side_effect=[taken, taken, "b" * ID_LENGTH],
        ):
            assert generate_id({taken}) == "b" * ID_LENGTH

    def test_accepts_dict_as_live_set(self):
        taken = "c" * ID_LENGTH
        with patch(
            "syncrelay.services.identity.secrets.token_hex",
            side_effect=[taken, "d" * ID_LENGTH],
        ):
            assert generate_id({taken: object()}) == "d" * ID_LENGTH


class TestValidateId:
    def test_generated_id_is_valid(self):
        assert validate_id(generate_id())

    def test_wrong_length(self):
        assert not validate_id("abc")
        assert not validate_id("a" * 17)

    def test_wrong_type(self):
        assert not validate_id(None)
        assert not validate_id(1234567890123456)
        assert not validate_id(["a"] * 16)
