"""In-memory registry of statistics items, keyed by (stat kind, stat object)."""

import threading
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from brokermetrics.observability import get_logger
from brokermetrics.reporter import ScheduledStatReporter
from brokermetrics.statistics import StatisticsItem

ItemFactory = Callable[[str, str, Sequence[str]], StatisticsItem]


class StatisticsRegistry:
    """
    Creates each StatisticsItem exactly once (first writer wins) and hands new
    items to the scheduled reporter. Accumulator names are declared per kind.
    """

    def __init__(
        self,
        kind_item_names: Mapping[str, Sequence[str]],
        reporter: Optional[ScheduledStatReporter] = None,
        item_factory: Optional[ItemFactory] = None,
    ) -> None:
        self._kind_item_names: Dict[str, Tuple[str, ...]] = {k: tuple(v) for k, v in kind_item_names.items()}
        self._reporter = reporter
        self._item_factory = item_factory or StatisticsItem
        self._items: Dict[Tuple[str, str], StatisticsItem] = {}
        self._lock = threading.Lock()
        self._logger = get_logger("brokermetrics.registry")

    @property
    def reporter(self) -> Optional[ScheduledStatReporter]:
        return self._reporter

    def kinds(self) -> List[str]:
        return sorted(self._kind_item_names)

    def get_item(self, stat_kind: str, stat_object: str) -> Optional[StatisticsItem]:
        """Return the item or None."""
        return self._items.get((stat_kind, stat_object))

    def get_or_create_item(self, stat_kind: str, stat_object: str) -> StatisticsItem:
        """
        Return the existing item or create, register and schedule a new one.
        Raises ValueError for a kind with no declared item names.
        """
        key = (stat_kind, stat_object)
        item = self._items.get(key)
        if item is not None:
            return item
        item_names = self._kind_item_names.get(stat_kind)
        if item_names is None:
            raise ValueError(f"unknown stat kind {stat_kind!r}")
        with self._lock:
            item = self._items.get(key)
            if item is not None:
                return item
            item = self._item_factory(stat_kind, stat_object, item_names)
            self._items[key] = item
        self._logger.info("item_created", extra={"stat_kind": stat_kind, "stat_object": stat_object})
        if self._reporter is not None:
            self._reporter.schedule(item)
        return item

    def inc(self, stat_kind: str, stat_object: str, *item_incs: int) -> StatisticsItem:
        """Increment (creating on first use) and return the item."""
        item = self.get_or_create_item(stat_kind, stat_object)
        item.inc_items(*item_incs)
        return item

    def remove_item(self, stat_kind: str, stat_object: str) -> bool:
        """Deregister the item and cancel its reporting. Returns False if not found."""
        with self._lock:
            item = self._items.pop((stat_kind, stat_object), None)
        if item is None:
            return False
        if self._reporter is not None:
            self._reporter.remove(item)
        return True

    def items(self) -> List[StatisticsItem]:
        with self._lock:
            return list(self._items.values())

    def item_count(self) -> int:
        return len(self._items)
