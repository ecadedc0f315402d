import pytest
from lazyflow import EMPTY, Flow, PreconditionError, RecursionMode


def children(node):
    return node.get("children")


def names(pipeline):
    return pipeline.map(lambda node: node["name"]).to_list()


class TestRecursive:
    """Test depth-first tree walks"""

    def test_self_first(self, tree):
        result = names(Flow(tree).recursive(children))
        assert result == ["root", "a", "a1", "a2", "b", "solo"], f"Unexpected order {result}"

    def test_child_first(self, tree):
        result = names(Flow(tree).recursive(children, RecursionMode.CHILD_FIRST))
        assert result == ["a1", "a2", "a", "b", "root", "solo"], f"Unexpected order {result}"

    def test_leaves_only(self, tree):
        """A node with an empty child list still counts as a parent"""
        result = names(Flow(tree).recursive(children, "leaves_only"))
        assert result == ["a2", "b", "solo"], f"Unexpected order {result}"

    def test_callback_receives_depth(self, tree):
        depths = []

        def visit(node, key, depth):
            depths.append((node["name"], depth))
            return node.get("children")

        Flow(tree).recursive(visit).to_list()
        assert depths == [("root", 0), ("a", 1), ("a1", 2), ("a2", 2), ("b", 1), ("solo", 0)]

    def test_keys_come_from_each_level(self, tree):
        keys = [k for k, _ in Flow(tree).recursive(children).items()]
        assert keys == [0, 0, 0, 1, 1, 1], f"Unexpected keys {keys}"

    def test_deep_nesting_does_not_recurse(self):
        depth = 5000
        node = {"name": "leaf"}
        for _ in range(depth):
            node = {"name": "inner", "children": [node]}

        result = Flow([node]).recursive(children, "leaves_only").to_list()
        assert result == [{"name": "leaf"}]

    def test_children_are_walked_lazily(self, tree):
        visited = []

        def visit(node):
            visited.append(node["name"])
            return node.get("children")

        first = Flow(tree).recursive(visit).first()
        assert first["name"] == "root"
        assert visited == ["root"], f"Visited too much: {visited}"

    def test_non_iterable_children(self):
        with pytest.raises(PreconditionError, match="children callback"):
            Flow([1]).recursive(lambda v: "not children").to_list()


class TestRecursiveUnfold:
    """Test recursive expansion"""

    def test_flattens_nested_lists(self):
        result = Flow([1, [2, [3, 4]], 5]).recursive_unfold(lambda v: v).to_list()
        assert result == [1, 2, 3, 4, 5], f"Unexpected result {result}"

    def test_keep_originals(self):
        result = Flow([[1, 2]]).recursive_unfold(lambda v: v, keep_originals=True).to_list()
        assert result == [[1, 2], 1, 2], f"Unexpected result {result}"

    def test_scalar_results_replace_values(self):
        result = Flow([1, [2]]).recursive_unfold(lambda v: v if isinstance(v, list) else v * 10).to_list()
        assert result == [10, 20], f"Unexpected result {result}"

    def test_empty_results_drop_values(self):
        result = Flow([1, 2, 3]).recursive_unfold(lambda v: EMPTY if v == 2 else v).to_list()
        assert result == [1, 3], f"Unexpected result {result}"

    def test_callback_receives_depth(self):
        seen = []

        def expand(value, key, depth):
            seen.append((value, depth))
            return value

        Flow([[7]]).recursive_unfold(expand).to_list()
        assert seen == [([7], 0), (7, 1)], f"Unexpected calls {seen}"

    def test_keys_come_from_each_level(self):
        result = list(Flow({"top": {"inner": 1}}).recursive_unfold(lambda v: v).items())
        assert result == [("inner", 1)], f"Unexpected items {result}"
