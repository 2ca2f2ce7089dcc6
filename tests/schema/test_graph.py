"""Tests for dependency ordering of entities."""

from __future__ import annotations

import pytest

from ormsync.core.errors import DependencyCycleError
from ormsync.schema.descriptors import EntityBuilder
from ormsync.schema.graph import dependency_order


def entity(name: str, *targets: str):
    builder = EntityBuilder(name).identity()
    for target in targets:
        builder.many_to_one(f"{target.lower()}_id", target)
    return builder.build()


class TestDependencyOrder:
    def test_dependency_comes_first(self):
        a, b = entity("A"), entity("B", "A")
        result = dependency_order([b, a])
        assert result.names == ["A", "B"]
        assert not result.has_cycles

    def test_chain(self):
        result = dependency_order([entity("C", "B"), entity("B", "A"), entity("A")])
        assert result.names == ["A", "B", "C"]

    def test_independent_entities_keep_input_order(self):
        result = dependency_order([entity("X"), entity("Y"), entity("Z")])
        assert result.names == ["X", "Y", "Z"]

    def test_diamond(self):
        result = dependency_order([entity("D", "B", "C"), entity("B", "A"), entity("C", "A"), entity("A")])
        names = result.names
        assert names.index("A") < names.index("B") < names.index("D")
        assert names.index("C") < names.index("D")

    def test_registry_fixture(self, registry):
        assert dependency_order(registry).names == ["Team", "User", "Role"]

    def test_self_reference_ignored(self):
        result = dependency_order([entity("Node", "Node")])
        assert result.names == ["Node"]
        assert not result.has_cycles

    def test_unregistered_target_ignored(self):
        assert dependency_order([entity("A", "Missing")]).names == ["A"]

    def test_each_entity_once(self, registry):
        names = dependency_order(registry).names
        assert sorted(names) == sorted(set(names))


class TestCycles:
    def test_cycle_reported_and_order_complete(self):
        result = dependency_order([entity("A", "B"), entity("B", "A")])
        assert result.has_cycles
        assert result.cycles == [["A", "B", "A"]]
        assert sorted(result.names) == ["A", "B"]

    def test_longer_cycle(self):
        result = dependency_order([entity("A", "C"), entity("B", "A"), entity("C", "B")])
        assert result.cycles == [["A", "C", "B", "A"]]
        assert len(result.names) == 3

    def test_strict_mode_raises(self):
        with pytest.raises(DependencyCycleError) as exc_info:
            dependency_order([entity("A", "B"), entity("B", "A")], strict=True)
        assert exc_info.value.cycles == [["A", "B", "A"]]
