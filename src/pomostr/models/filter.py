"""
Read-only relay query predicates (NIP-01 filters).

A [Filter][pomostr.models.filter.Filter] is built once per query and never
mutated after submission. [to_dict()][pomostr.models.filter.Filter.to_dict]
produces the wire object embedded in ``["REQ", id, filter, ...]`` frames,
omitting every absent field and rendering tag filters as ``#<letter>``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ._validation import validate_timestamp


@dataclass(frozen=True, slots=True)
class Filter:
    """Immutable NIP-01 filter.

    Attributes:
        kinds: Accepted event kinds.
        authors: Accepted author pubkeys (hex).
        tags: Tag filters keyed by single-letter tag name (``"p"``, ``"t"``)
            without the ``#`` prefix.
        since: Inclusive lower bound on ``created_at``.
        until: Inclusive upper bound on ``created_at``.
        limit: Maximum number of stored events the relay should return.
        search: NIP-50 free-text query (only search-capable relays honor it).

    Examples:
        ```python
        Filter(kinds=(8809,), tags={"p": ("ab" * 32,)}, limit=200).to_dict()
        # {'kinds': [8809], '#p': ['abab...'], 'limit': 200}
        ```
    """

    kinds: tuple[int, ...] = ()
    authors: tuple[str, ...] = ()
    tags: Mapping[str, tuple[str, ...]] = field(default_factory=dict, hash=False)
    since: int | None = None
    until: int | None = None
    limit: int | None = None
    search: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kinds", tuple(self.kinds))
        object.__setattr__(self, "authors", tuple(self.authors))
        frozen_tags: dict[str, tuple[str, ...]] = {}
        for name, values in self.tags.items():
            if len(name) != 1:
                raise ValueError(f"Tag filter name must be a single letter, got {name!r}")
            frozen_tags[name] = tuple(values)
        object.__setattr__(self, "tags", frozen_tags)
        for name in ("since", "until", "limit"):
            value = getattr(self, name)
            if value is not None:
                validate_timestamp(value, name)

    def with_tag(self, name: str, values: Iterable[str]) -> Filter:
        """Return a copy with an extra tag filter."""
        return Filter(
            kinds=self.kinds,
            authors=self.authors,
            tags={**self.tags, name: tuple(values)},
            since=self.since,
            until=self.until,
            limit=self.limit,
            search=self.search,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the wire object, omitting absent fields."""
        data: dict[str, Any] = {}
        if self.kinds:
            data["kinds"] = list(self.kinds)
        if self.authors:
            data["authors"] = list(self.authors)
        for name, values in self.tags.items():
            data[f"#{name}"] = list(values)
        if self.since is not None:
            data["since"] = self.since
        if self.until is not None:
            data["until"] = self.until
        if self.limit is not None:
            data["limit"] = self.limit
        if self.search is not None:
            data["search"] = self.search
        return data
