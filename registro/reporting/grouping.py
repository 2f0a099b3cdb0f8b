"""Generic grouping helpers shared by all report builders."""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Generic, TypeVar

from registro.reporting.durations import minutes_to_hours

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


def group_by(items: Iterable[T], key_fn: Callable[[T], K]) -> dict[K, list[T]]:
    """Group items by key, keeping keys in first-seen order."""

    groups: dict[K, list[T]] = {}
    for item in items:
        groups.setdefault(key_fn(item), []).append(item)
    return groups


def sort_groups(
    groups: dict[K, list[T]],
    sort_key: Callable[[K, list[T]], Any],
) -> dict[K, list[T]]:
    """Return a new mapping ordered by ``sort_key(key, members)``.

    The sort is stable, so groups with equal keys keep first-seen order.
    """

    return dict(sorted(groups.items(), key=lambda pair: sort_key(pair[0], pair[1])))


def label_sort_key(label: str, key: object = None) -> tuple[str, str, str]:
    """Case-insensitive alphabetical ordering with a deterministic tie break."""

    return (label.casefold(), label, "" if key is None else str(key))


def iso_week_key(day: date) -> tuple[int, int]:
    """``(iso_year, iso_week)`` so weeks sort chronologically across new year."""

    iso = day.isocalendar()
    return iso[0], iso[1]


@dataclass(slots=True)
class GroupNode(Generic[T]):
    """One group at one level of a grouping tree with its own subtotal."""

    key: Hashable
    label: str
    items: list[T]
    total_minutes: int
    children: list[GroupNode[T]] = field(default_factory=list)

    @property
    def total_hours(self) -> Decimal:
        return minutes_to_hours(self.total_minutes)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def leaves(self) -> list[GroupNode[T]]:
        if self.is_leaf:
            return [self]
        collected: list[GroupNode[T]] = []
        for child in self.children:
            collected.extend(child.leaves())
        return collected


@dataclass(frozen=True, slots=True)
class GroupLevel(Generic[T]):
    """Key and label extraction for one level of ``group_tree``."""

    key_fn: Callable[[T], Hashable]
    label_fn: Callable[[T], str]
    sort_key: Callable[[GroupNode[T]], Any] | None = None


def _default_node_order(node: GroupNode[Any]) -> tuple[str, str, str]:
    return label_sort_key(node.label, node.key)


def group_tree(
    items: Sequence[T],
    levels: Sequence[GroupLevel[T]],
    minutes_fn: Callable[[T], int],
) -> list[GroupNode[T]]:
    """Build a nested grouping by composing one ``group_by`` per level.

    Each node sums raw minutes of its own members, so subtotals at every
    level are independent of how lower levels are rounded for display.
    """

    if not levels:
        return []

    level, remaining = levels[0], levels[1:]
    nodes: list[GroupNode[T]] = []
    for key, members in group_by(items, level.key_fn).items():
        nodes.append(
            GroupNode(
                key=key,
                label=level.label_fn(members[0]),
                items=members,
                total_minutes=sum(minutes_fn(member) for member in members),
                children=group_tree(members, remaining, minutes_fn),
            )
        )
    nodes.sort(key=level.sort_key or _default_node_order)
    return nodes
