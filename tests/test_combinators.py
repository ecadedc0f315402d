import pytest
from lazyflow import (
    CacheCursor,
    ConditionalCursor,
    Flow,
    HeadAndTailCursor,
    ListCursor,
    LoopCursor,
    MultipleCursor,
    RangeCursor,
    ReduceCursor,
    UnfoldCursor,
    ZipMode,
)


class TestRange:
    """Test inclusive numeric ranges"""

    def test_ascending(self):
        assert list(RangeCursor(1, 4)) == [1, 2, 3, 4]

    def test_descending(self):
        assert list(RangeCursor(5, 1, -2)) == [5, 3, 1]

    def test_float_step(self):
        assert list(RangeCursor(0, 1, 0.5)) == [0, 0.5, 1.0]

    def test_empty_when_start_is_past_stop(self):
        assert list(RangeCursor(5, 1)) == []

    def test_keys_count_from_zero(self):
        assert Flow.range(10, 12).collect() == {0: 10, 1: 11, 2: 12}


class TestReduceCursor:
    """Test the reduction cursor"""

    def test_invalid_until_reset(self):
        cursor = ReduceCursor(ListCursor([1, 2]), lambda acc, v: acc + v, 0)
        assert not cursor.valid()
        cursor.reset()
        assert cursor.valid()
        assert cursor.key() == 0
        assert cursor.current() == 3

    def test_single_element(self):
        cursor = ReduceCursor(ListCursor([1, 2]), lambda acc, v: acc + v, 0)
        assert list(cursor.items()) == [(0, 3)]


class TestCacheCursor:
    """Test memoization"""

    def test_replays_after_complete_pass(self, counting_source):
        source = counting_source(["a", "b"])
        cursor = CacheCursor(Flow(source.generator).get_cursor())

        assert list(cursor.items()) == [(0, "a"), (1, "b")]
        assert cursor.complete
        assert list(cursor.items()) == [(0, "a"), (1, "b")]
        assert source.produced == 2

    def test_partial_pass_is_discarded(self):
        cursor = CacheCursor(ListCursor([1, 2, 3]))
        cursor.reset()
        cursor.current()
        cursor.advance()
        assert not cursor.complete

        assert list(cursor) == [1, 2, 3], "A restarted pass reads the upstream again"
        assert cursor.complete

    def test_pass_stopped_by_slice_at_the_end_is_complete(self):
        """A downstream count that ends exactly at the last element still completes the recording"""
        pipeline = Flow(x for x in "abc").cache().slice(0, 3)

        first = pipeline.to_list()
        second = pipeline.to_list()

        assert first == ["a", "b", "c"], f"Unexpected first pass {first}"
        assert second == ["a", "b", "c"], f"Second pass got {second}"

    def test_pass_stopped_by_only_at_the_end_is_complete(self, counting_source):
        source = counting_source([1, 2, 3])
        cached = Flow(source.generator).cache()

        assert Flow(cached).only(3).to_list() == [1, 2, 3]
        assert cached.to_list() == [1, 2, 3], "The recording should be replayed"
        assert source.produced == 3, f"Source traversed more than once: {source.produced} pulls"

    def test_cache_of_empty_source(self):
        cursor = CacheCursor(ListCursor([]))
        assert list(cursor) == []
        assert cursor.complete


class TestLoop:
    """Test repeat(), repeat_while() and the loop cursor"""

    def test_repeat_counts(self):
        assert Flow([1, 2]).repeat(0).to_list() == []
        assert Flow([1, 2]).repeat(1).reindex().collect() == {0: 1, 1: 2}
        assert Flow([1, 2]).repeat(2).reindex().collect() == {0: 1, 1: 2, 2: 1, 3: 2}

    def test_repeat_keeps_keys(self):
        result = list(Flow({"a": 1}).repeat(2).items())
        assert result == [("a", 1), ("a", 1)], f"Unexpected items {result}"

    def test_repeat_forever_with_limit(self):
        result = Flow([1, 2]).repeat(-1).only(5).to_list()
        assert result == [1, 2, 1, 2, 1], f"Unexpected result {result}"

    def test_counters_restored_on_reset(self):
        pipeline = Flow([1, 2]).repeat(2)
        assert pipeline.to_list() == [1, 2, 1, 2]
        assert pipeline.to_list() == [1, 2, 1, 2], "A second traversal repeats again"

    def test_one_shot_source_loops_once(self, counting_source):
        source = counting_source([1, 2])
        assert Flow(source.generator).repeat(3).to_list() == [1, 2]

    def test_limit_and_times_together(self):
        cursor = LoopCursor(ListCursor([1, 2, 3]), times=3, limit=4)
        assert list(cursor) == [1, 2, 3, 1]

    def test_repeat_while(self):
        calls = []

        def again(value, key):
            calls.append((value, key))
            return len(calls) < 3

        result = Flow([1, 2]).repeat_while(again).to_list()

        assert result == [1, 2, 1, 2, 1, 2], f"Unexpected result {result}"
        assert calls == [(None, None)] * 3, "The test runs on an exhausted upstream"


class TestConditional:
    """Test while_()"""

    def test_stops_at_first_failure(self):
        result = Flow([1, 2, 3, 1]).while_(lambda v: v < 3).to_list()
        assert result == [1, 2], f"Expected [1, 2], got {result}"

    def test_can_use_keys(self):
        result = Flow({"a": 1, "b": 2, "stop": 3, "c": 4}).while_(lambda v, k: k != "stop").collect()
        assert result == {"a": 1, "b": 2}, f"Unexpected result {result}"

    def test_reset_clears_failure(self):
        cursor = ConditionalCursor(ListCursor([1, 5, 1]), lambda v: v < 3)
        assert list(cursor) == [1]
        assert list(cursor) == [1]


class TestHeadAndTail:
    """Test the head-and-tail cursor"""

    def test_renumbered_keys(self):
        cursor = HeadAndTailCursor("h", {"x": 1, "y": 2})
        assert list(cursor.items()) == [(0, "h"), (1, 1), (2, 2)]

    def test_tail_keys_kept(self):
        cursor = HeadAndTailCursor("h", {"x": 1}, head_key="head", keep_tail_keys=True)
        assert list(cursor.items()) == [("head", "h"), ("x", 1)]

    def test_empty_tail(self):
        assert list(HeadAndTailCursor("h", []).items()) == [(0, "h")]


class TestUnfold:
    """Test one-level flattening"""

    def test_flat_keys(self):
        result = Flow([1, [2, 3], 4]).unfold(flat_keys=True).collect()
        assert result == {0: 1, 1: 2, 2: 3, 3: 4}, f"Unexpected result {result}"

    def test_original_keys(self):
        result = list(Flow([1, {"a": 2, "b": 3}]).unfold().items())
        assert result == [(0, 1), ("a", 2), ("b", 3)], f"Unexpected items {result}"

    def test_empty_iterables_vanish(self):
        assert Flow([[], [1], [], (), [2]]).unfold().to_list() == [1, 2]

    def test_strings_are_not_expanded(self):
        assert Flow(["ab", ["c"]]).unfold().to_list() == ["ab", "c"]

    def test_only_one_level(self):
        assert Flow([[1, [2]]]).unfold().to_list() == [1, [2]]

    def test_cursor_values_are_expanded(self):
        cursor = UnfoldCursor(ListCursor([ListCursor([1, 2]), 3]), use_original_keys=False)
        assert list(cursor.items()) == [(0, 1), (1, 2), (2, 3)]


class TestCombine:
    """Test parallel iteration of several sources"""

    def test_any_mode_pads_with_none(self):
        result = Flow.combine([["a", "b"], ["x", "y", "z"]], fields=["l", "r"]).pack().collect()
        assert result == {
            0: {"l": "a", "r": "x"},
            1: {"l": "b", "r": "y"},
            2: {"l": None, "r": "z"},
        }, f"Unexpected records {result}"

    def test_all_mode_stops_at_shortest(self):
        result = Flow.combine([[1, 2, 3], [4, 5]], mode="all").to_list()
        assert result == [{0: 1, 1: 4}, {0: 2, 1: 5}], f"Unexpected records {result}"

    def test_field_names_from_mapping_keys(self):
        result = Flow.combine({"x": [1], "y": [2]}).to_list()
        assert result == [{"x": 1, "y": 2}], f"Unexpected records {result}"

    def test_keys_are_step_indexes(self):
        cursor = MultipleCursor([("a", ListCursor([1, 2]))], ZipMode.ANY)
        assert [k for k, _ in cursor.items()] == [0, 1]

    def test_each_step_is_a_new_record(self):
        records = Flow.combine([[1, 2]], fields=["n"]).to_list()
        assert records[0] is not records[1]

    def test_no_sources(self):
        assert list(MultipleCursor([])) == []
