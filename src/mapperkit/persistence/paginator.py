"""
Lazy pagination over a translated query.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Iterator, List, Optional, Type

from ..core.entity import Entity
from ..query import SelectQuery
from .errors import InvalidArgumentError

if TYPE_CHECKING:
    from .persister import Persister


class Paginator:
    """
    One page of entities plus the totals needed to render navigation.

    Nothing is read until the items or the totals are requested; both are
    cached afterwards. When the query carried an explicit ``limit(start,
    count)`` the start offset wins over page arithmetic.
    """

    DEFAULT_PAGE_SIZE = 10

    def __init__(
        self,
        persister: "Persister",
        entity_type: Type[Entity],
        query: SelectQuery,
        *,
        page_number: Optional[int] = None,
        page_size: Optional[int] = None,
        item_offset: Optional[int] = None,
    ) -> None:
        if page_size is not None and page_size < 1:
            raise InvalidArgumentError(f"Page size must be positive, got {page_size}.")
        if page_number is not None and page_number < 1:
            raise InvalidArgumentError(f"Page number must be positive, got {page_number}.")
        self.persister = persister
        self.entity_type = entity_type
        self.query = query.without_limit()
        self.item_count_per_page = page_size or self.DEFAULT_PAGE_SIZE
        self.current_page_number = page_number or 1
        self._item_offset = item_offset
        self._total_item_count: Optional[int] = None
        self._current_items: Optional[List[Entity]] = None

    def __repr__(self) -> str:
        return (
            f"<Paginator {self.entity_type.__name__} page={self.current_page_number} "
            f"size={self.item_count_per_page}>"
        )

    @property
    def item_offset(self) -> int:
        if self._item_offset is not None:
            return self._item_offset
        return (self.current_page_number - 1) * self.item_count_per_page

    @property
    def total_item_count(self) -> int:
        if self._total_item_count is None:
            gateway = self.persister.get_table_gateway(self.entity_type)
            self._total_item_count = gateway.count(self.query)
        return self._total_item_count

    @property
    def page_count(self) -> int:
        return math.ceil(self.total_item_count / self.item_count_per_page)

    def get_items(self, offset: int, count: int) -> List[Entity]:
        gateway = self.persister.get_table_gateway(self.entity_type)
        rows = gateway.fetch_rows(gateway.entity_query(self.query.with_limit(count, offset)))
        return self.persister.load_entities(self.entity_type, rows)

    def current_items(self) -> List[Entity]:
        if self._current_items is None:
            self._current_items = self.get_items(self.item_offset, self.item_count_per_page)
        return self._current_items

    def __iter__(self) -> Iterator[Entity]:
        return iter(self.current_items())

    def __len__(self) -> int:
        return len(self.current_items())
