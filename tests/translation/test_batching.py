"""Tests for the batch composer."""

import pytest

from conftest import make_units
from subtranslator.errors import ConfigurationError
from subtranslator.translation.batching import TextUnit, compose


class TestCompose:
    def test_small_input_is_one_batch(self):
        units = [TextUnit("1", "Hello"), TextUnit("2", "World")]
        batches = compose(units, 100)
        assert len(batches) == 1
        assert batches[0].texts == ["Hello", "World"]
        assert batches[0].length == 10
        assert batches[0].index == 0

    def test_empty_input(self):
        assert compose([], 100) == []

    def test_split_on_length(self):
        units = make_units("aaaa", "bbbb", "cccc")
        batches = compose(units, 8)
        assert [b.texts for b in batches] == [["aaaa", "bbbb"], ["cccc"]]
        assert [b.index for b in batches] == [0, 1]

    def test_exact_fit_stays_in_batch(self):
        units = make_units("aaa", "bbb")
        batches = compose(units, 6)
        assert len(batches) == 1

    def test_oversized_unit_gets_own_batch(self):
        units = make_units("short", "x" * 50, "tail")
        batches = compose(units, 10)
        assert [b.texts for b in batches] == [["short"], ["x" * 50], ["tail"]]
        # Content is never truncated
        assert batches[1].length == 50

    def test_completeness_and_order(self):
        texts = [f"line {i} " * (i % 7 + 1) for i in range(200)]
        units = make_units(*texts)
        batches = compose(units, 120)
        flattened = [u for b in batches for u in b.units]
        assert flattened == units

    def test_bound_respected_for_multi_unit_batches(self):
        texts = [("word " * (i % 9 + 1)).strip() for i in range(100)]
        batches = compose(make_units(*texts), 40)
        for b in batches:
            assert len(b) >= 1
            if len(b) > 1:
                assert b.length <= 40

    def test_unit_ids(self):
        batches = compose(make_units("a", "b"), 100)
        assert batches[0].unit_ids == ("1", "2")

    def test_empty_content_units_are_kept(self):
        batches = compose(make_units("", "a", ""), 1)
        flattened = [u.content for b in batches for u in b.units]
        assert flattened == ["", "a", ""]

    @pytest.mark.parametrize("bad", [0, -5])
    def test_invalid_max_length(self, bad):
        with pytest.raises(ConfigurationError):
            compose(make_units("a"), bad)
