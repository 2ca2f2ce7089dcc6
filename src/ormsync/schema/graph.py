"""Dependency ordering of entities.

An entity depends on every registered entity its many-to-one references
target. Tables are created in dependency-first order so foreign keys
always point at tables that already exist.

Cycles are tolerated by default: the back edge is logged, recorded in
``OrderResult.cycles`` and skipped, and every entity still appears
exactly once in the order. ``strict=True`` raises
:class:`~ormsync.core.errors.DependencyCycleError` instead.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from ormsync.core.errors import DependencyCycleError
from ormsync.core.logging import get_logger
from ormsync.schema.descriptors import EntityDescriptor

logger = get_logger(__name__)

_WHITE, _GREY, _BLACK = 0, 1, 2


@dataclass
class OrderResult:
    order: list[EntityDescriptor] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.order]

    @property
    def has_cycles(self) -> bool:
        return bool(self.cycles)


def dependency_order(entities: Iterable[EntityDescriptor], *, strict: bool = False) -> OrderResult:
    """Topologically order ``entities`` so dependencies come first.

    Traversal follows the input order and each entity's field declaration
    order, so the result is deterministic. Self references are ignored.

    >>> from ormsync.schema.descriptors import EntityBuilder
    >>> a = EntityBuilder("A").identity().build()
    >>> b = EntityBuilder("B").identity().many_to_one("a_id", "A").build()
    >>> dependency_order([b, a]).names
    ['A', 'B']
    """
    by_name = {e.name: e for e in entities}
    color = {name: _WHITE for name in by_name}
    result = OrderResult()
    path: list[str] = []

    def visit(name: str) -> None:
        color[name] = _GREY
        path.append(name)
        for ref in by_name[name].many_to_one:
            target = ref.target
            if target == name or target not in by_name:
                continue
            if color[target] == _GREY:
                cycle = path[path.index(target):] + [target]
                result.cycles.append(cycle)
                logger.warning("schema.dependency_cycle", entity=target, cycle=" -> ".join(cycle))
                continue
            if color[target] == _WHITE:
                visit(target)
        path.pop()
        color[name] = _BLACK
        result.order.append(by_name[name])

    for name in by_name:
        if color[name] == _WHITE:
            visit(name)

    if strict and result.cycles:
        raise DependencyCycleError(result.cycles)
    return result


__all__ = ["OrderResult", "dependency_order"]
