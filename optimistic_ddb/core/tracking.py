"""
Item Tracking Store

Associates a live item (a model instance handed to the caller) with the
persistence metadata the commit engine needs: which table it belongs to,
its last persisted representation, its version, and whether it was drafted
or marked for deletion.

Entries are keyed by object identity, so two structurally equal items are
tracked separately, and are dropped as soon as the item is garbage collected.
Callers changing TrackedItem fields hold the store's lock while doing so.
"""

import logging
import threading
import weakref
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

if TYPE_CHECKING:
    from ..models.table import Table

logger = logging.getLogger(__name__)


@dataclass
class TrackedItem:
    """Persistence metadata of one tracked item."""

    table: 'Table'
    prior_snapshot: Dict[str, Any] = field(default_factory=dict)
    version: int = 0
    is_newly_created: bool = False
    is_marked_for_deletion: bool = False


class ItemTrackingStore:
    """Identity-keyed, weakly-referencing map from items to TrackedItem."""

    def __init__(self):
        self._entries: Dict[int, Tuple[weakref.ref, TrackedItem]] = {}
        self._lock = threading.RLock()

    @property
    def lock(self):
        """Re-entrant lock guarding the entries and the TrackedItem fields they hold."""
        return self._lock

    def put(self, item: Any, tracked_item: TrackedItem) -> None:
        item_id = id(item)

        def _discard(_ref, item_id=item_id):
            with self._lock:
                entry = self._entries.get(item_id)
                if entry is not None and entry[0] is _ref:
                    del self._entries[item_id]

        with self._lock:
            self._entries[item_id] = (weakref.ref(item, _discard), tracked_item)

    def get(self, item: Any) -> Optional[TrackedItem]:
        """Return the item's metadata, or None when the item is not tracked."""
        with self._lock:
            entry = self._entries.get(id(item))
            if entry is None or entry[0]() is not item:
                return None
            return entry[1]

    def remove(self, item: Any) -> None:
        with self._lock:
            entry = self._entries.get(id(item))
            if entry is not None and entry[0]() is item:
                del self._entries[id(item)]

    def __contains__(self, item: Any) -> bool:
        return self.get(item) is not None

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for ref, _ in self._entries.values() if ref() is not None)
