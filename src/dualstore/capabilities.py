"""Capability descriptors for record/backend pairings.

Every repository and model manager carries one ``Capabilities`` value,
resolved once at construction. Operations consult it before touching the
store, so the same call with the same arguments always either proceeds or
raises the same ``CapabilityError``, whatever data the store holds.
"""

from dataclasses import dataclass, replace
from typing import FrozenSet, Iterable, Optional, Sequence, Tuple

from .exceptions import (
    GroupByNotSupportedError,
    MassUpdateNotAvailableError,
    OrderByNotSupportedError,
    RelationsNotSupportedError,
)


@dataclass(frozen=True)
class Capabilities:
    """What a backend can do for one record type.

    Attributes:
        backend: Backend name used in error messages and cache keys
        relations: Whether eager loading of relations is possible
        ordering: Whether ordering is possible at all
        sortable_keys: Fields ordering is restricted to (None = any field)
        grouping: Whether GROUP BY is possible
        mass_update: Whether single-statement conditional bulk updates are declared
    """

    backend: str
    relations: bool = True
    ordering: bool = True
    sortable_keys: Optional[FrozenSet[str]] = None
    grouping: bool = True
    mass_update: bool = False

    def enable(self, **flags: bool) -> "Capabilities":
        """Return a copy with the given flags switched."""
        return replace(self, **flags)

    def with_sortable_keys(self, keys: Iterable[str]) -> "Capabilities":
        """Return a copy that only allows ordering on ``keys``."""
        return replace(self, sortable_keys=frozenset(keys))

    def require_relations(self, relations: Sequence[str]) -> None:
        if relations and not self.relations:
            raise RelationsNotSupportedError(self.backend, list(relations))

    def require_ordering(self, order_by: Sequence[Tuple[str, object]]) -> None:
        if not order_by:
            return
        if not self.ordering:
            raise OrderByNotSupportedError(self.backend)
        if self.sortable_keys is None:
            return
        for field, _direction in order_by:
            if field not in self.sortable_keys:
                raise OrderByNotSupportedError(self.backend, field)

    def require_grouping(self, group_by: Sequence[str]) -> None:
        if group_by and not self.grouping:
            raise GroupByNotSupportedError(self.backend)

    def require_mass_update(self, model_name: str) -> None:
        if not self.mass_update:
            raise MassUpdateNotAvailableError(self.backend, model_name)

    def check_read(
        self,
        relations: Sequence[str] = (),
        order_by: Sequence[Tuple[str, object]] = (),
        group_by: Sequence[str] = (),
    ) -> None:
        """Gate a read in the order relations, ordering, grouping."""
        self.require_relations(relations)
        self.require_ordering(order_by)
        self.require_grouping(group_by)


RELATIONAL = Capabilities(backend="relational")

# Ordering limited to index-defined sort keys; repositories narrow
# sortable_keys from their table schema.
WIDE_COLUMN = Capabilities(
    backend="wide-column",
    relations=False,
    sortable_keys=frozenset(),
    grouping=False,
)

WIDE_COLUMN_STRICT = Capabilities(
    backend="wide-column",
    relations=False,
    ordering=False,
    grouping=False,
)
