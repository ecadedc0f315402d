import pytest
from lazyflow import Flow, MappingCursor


def three_way(a, b):
    return (a > b) - (a < b)


class TestSort:
    """Test the sort kinds"""

    def test_sort_renumbers_keys(self):
        result = Flow({"a": 3, "b": 1, "c": 2}).sort().collect()
        assert result == {0: 1, 1: 2, 2: 3}, f"Unexpected result {result}"

    def test_rsort(self):
        assert Flow([1, 3, 2]).sort("rsort").to_list() == [3, 2, 1]

    def test_usort(self):
        result = Flow(["bb", "a", "ccc"]).sort("usort", lambda a, b: len(a) - len(b)).collect()
        assert result == {0: "a", 1: "bb", 2: "ccc"}, f"Unexpected result {result}"

    def test_asort_keeps_keys(self):
        result = list(Flow({"a": 3, "b": 1}).sort("asort").items())
        assert result == [("b", 1), ("a", 3)], f"Unexpected items {result}"

    def test_arsort(self):
        result = list(Flow({"a": 1, "b": 3}).sort("arsort").items())
        assert result == [("b", 3), ("a", 1)], f"Unexpected items {result}"

    def test_uasort(self):
        result = list(Flow({"x": 2, "y": 1}).sort("uasort", three_way).items())
        assert result == [("y", 1), ("x", 2)], f"Unexpected items {result}"

    def test_ksort(self):
        result = list(Flow({"b": 1, "a": 2}).sort("ksort").items())
        assert result == [("a", 2), ("b", 1)], f"Unexpected items {result}"

    def test_krsort(self):
        result = list(Flow({"a": 1, "b": 2}).sort("krsort").items())
        assert result == [("b", 2), ("a", 1)], f"Unexpected items {result}"

    def test_uksort(self):
        result = list(Flow({"bb": 1, "a": 2}).sort("uksort", lambda a, b: len(a) - len(b)).items())
        assert result == [("a", 2), ("bb", 1)], f"Unexpected items {result}"

    def test_natsort(self):
        result = list(Flow(["img12", "img10", "img2", "img1"]).sort("natsort").items())
        assert result == [(3, "img1"), (2, "img2"), (1, "img10"), (0, "img12")], f"Unexpected items {result}"

    def test_natcasesort(self):
        result = Flow(["IMG2", "img10", "img1"]).sort("natcasesort").to_list()
        assert result == ["img1", "IMG2", "img10"], f"Unexpected order {result}"

    def test_shuffle(self):
        result = Flow.range(1, 20).sort("shuffle").collect()
        assert sorted(result.values()) == list(range(1, 21))
        assert list(result.keys()) == list(range(20)), "Shuffled data is renumbered"

    def test_kind_is_case_insensitive(self):
        assert Flow([2, 1]).sort("SORT").to_list() == [1, 2]

    def test_sort_then_chain(self):
        result = Flow([3, 1, 2]).sort().map(lambda v: v * 10).to_list()
        assert result == [10, 20, 30], f"Unexpected result {result}"


class TestReverse:
    """Test reverse()"""

    def test_reverse_renumbers_integer_keys(self):
        pipeline = Flow([10, 20]).reverse()
        assert list(pipeline.items()) == [(0, 20), (1, 10)]

    def test_reverse_preserving_keys(self):
        pipeline = Flow([10, 20]).reverse(preserve_keys=True)
        assert list(pipeline.items()) == [(1, 20), (0, 10)]

    def test_reverse_keeps_string_keys(self):
        result = list(Flow({"a": 1, 5: 2, "b": 3}).reverse().items())
        assert result == [("b", 3), (0, 2), ("a", 1)], f"Unexpected items {result}"


class TestRestructuring:
    """Test pack(), drop(), swap() and collect()"""

    def test_collect_keeps_keys_last_wins(self):
        result = Flow({"a": 1}).append({"a": 2, "b": 3}).collect()
        assert result == {"a": 2, "b": 3}, f"Unexpected result {result}"

    def test_collect_returns_a_copy(self):
        pipeline = Flow([1, 2])
        data = pipeline.collect()
        data[0] = "changed"
        assert pipeline.collect() == {0: 1, 1: 2}

    def test_pack(self):
        result = Flow({"a": 1, "b": 2}).pack().collect()
        assert result == {0: 1, 1: 2}, f"Unexpected result {result}"

    def test_pack_keeps_duplicate_keyed_values(self):
        result = Flow([1]).append([2]).pack().collect()
        assert result == {0: 1, 1: 2}, f"Unexpected result {result}"

    def test_drop(self):
        assert Flow([1, 2, 3]).drop().collect() == {0: 1, 1: 2}
        assert Flow([1, 2, 3]).drop(2).to_list() == [1]
        assert Flow([1, 2, 3]).drop(5).to_list() == []

    def test_drop_zero_is_a_noop(self):
        assert Flow([1, 2]).drop(0).to_list() == [1, 2]

    def test_swap_with_sequence(self):
        result = Flow([3, 1, 2]).swap(sorted).collect()
        assert result == {0: 1, 1: 2, 2: 3}, f"Unexpected result {result}"

    def test_swap_with_mapping(self):
        result = Flow(["a", "b"]).swap(lambda values: {v: len(v) for v in values}).collect()
        assert result == {"a": 1, "b": 1}, f"Unexpected result {result}"

    def test_materialized_data_is_iterated_as_a_mapping(self):
        pipeline = Flow([2, 1]).sort()
        assert isinstance(pipeline.get_cursor(), MappingCursor)
        assert pipeline.to_list() == [1, 2]
