"""Tests for unit number normalization and pagination resolution."""

import pytest

from unit_bridge import config
from unit_bridge.normalization import normalize_unit_number
from unit_bridge.pagination import resolve_pagination


class TestNormalizeUnitNumber:

    @pytest.mark.parametrize("raw", ["12A", "12a", "12 a", " 12 A ", "1 2\tA", "12\na"])
    def test_case_and_whitespace_variants_share_a_key(self, raw):
        assert normalize_unit_number(raw) == "12a"

    def test_idempotent(self):
        for raw in ["  Shop 4 B", "PH-1", "g  f 02"]:
            once = normalize_unit_number(raw)
            assert normalize_unit_number(once) == once

    def test_keeps_punctuation(self):
        assert normalize_unit_number("B-12/3") == "b-12/3"

    def test_blank_becomes_empty(self):
        assert normalize_unit_number("   ") == ""


class TestResolvePagination:

    def test_defaults(self):
        page = resolve_pagination()
        assert page.take == config.DEFAULT_PAGE_SIZE
        assert page.skip == 0

    def test_limit_clamped_to_max(self):
        assert resolve_pagination(limit=config.MAX_PAGE_SIZE + 500).take == config.MAX_PAGE_SIZE

    def test_limit_floor_is_one(self):
        assert resolve_pagination(limit=0).take == 1

    def test_negative_offset_becomes_zero(self):
        assert resolve_pagination(offset=-5).skip == 0

    def test_passthrough(self):
        assert resolve_pagination(limit=10, offset=20) == (10, 20)
