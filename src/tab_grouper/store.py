from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, List, NamedTuple, Optional, Sequence, Union

from tab_grouper.errors import ClassificationError, TabNotFoundError, TabStoreError
from tab_grouper.types.tab import TAB_GROUP_ID_NONE, ColorSample, GroupColor, Tab, TabGroup

FaviconSource = Union[
    Dict[str, ColorSample],  # Fixed page_url -> pixels map
    Callable[[str], Awaitable[ColorSample]],  # Async fetcher, e.g. HttpFaviconSource
]


class TabStore(ABC):
    """The host's tab/window/group store.

    The store is owned by the host and may be changed by the user at any time,
    so callers re-read it on every event instead of caching. Every failed call
    raises ``TabStoreError``.
    """

    @abstractmethod
    async def list_tabs(self, window_id: Optional[int] = None) -> List[Tab]:
        """Tabs in host order, limited to one window when ``window_id`` is given."""

    @abstractmethod
    async def get_tab(self, tab_id: int) -> Tab:
        """Raises TabNotFoundError if the tab is gone."""

    @abstractmethod
    async def group_tabs(
        self,
        tab_ids: Sequence[int],
        group_id: Optional[int] = None,
        window_id: Optional[int] = None,
    ) -> int:
        """Add tabs to ``group_id``, or to a new group in ``window_id`` when no id is given.

        Returns:
            The id of the group the tabs ended up in
        """

    @abstractmethod
    async def ungroup_tabs(self, tab_ids: Sequence[int]) -> None:
        pass

    @abstractmethod
    async def update_group(
        self,
        group_id: int,
        title: Optional[str] = None,
        color: Optional[GroupColor] = None,
        collapsed: Optional[bool] = None,
    ) -> TabGroup:
        pass

    @abstractmethod
    async def fetch_favicon_pixels(self, page_url: str) -> ColorSample:
        """Decoded favicon of a page. Raises on any fetch or decode failure."""


class StoreCall(NamedTuple):
    method: str
    args: tuple


class InMemoryTabStore(TabStore):
    """Deterministic store for tests and local simulation.

    Mutating calls are recorded in ``calls``. ``fail_next`` makes the next N
    calls to a method raise ``TabStoreError``, which simulates a busy host.
    """

    def __init__(self, favicons: Optional[FaviconSource] = None):
        self._tabs: Dict[int, Tab] = {}
        self._groups: Dict[int, TabGroup] = {}
        self._next_group_id = 1
        self._failures: Dict[str, int] = {}
        self._favicons: FaviconSource = favicons if favicons is not None else {}
        self.calls: List[StoreCall] = []

    # --- setup helpers ---

    def add_tab(
        self,
        tab_id: int,
        url: str,
        window_id: int = 1,
        group_id: int = TAB_GROUP_ID_NONE,
        pending_url: Optional[str] = None,
    ) -> Tab:
        if group_id != TAB_GROUP_ID_NONE and group_id not in self._groups:
            self._groups[group_id] = TabGroup(id=group_id, window_id=window_id)
            self._next_group_id = max(self._next_group_id, group_id + 1)
        tab = Tab(
            id=tab_id,
            url=url,
            pending_url=pending_url,
            window_id=window_id,
            group_id=group_id,
        )
        self._tabs[tab_id] = tab
        return tab

    def remove_tab(self, tab_id: int) -> None:
        self._tabs.pop(tab_id, None)
        self._drop_empty_groups()

    def navigate(self, tab_id: int, url: str) -> None:
        self._tabs[tab_id].url = url
        self._tabs[tab_id].pending_url = None

    def fail_next(self, method: str, times: int = 1) -> None:
        self._failures[method] = self._failures.get(method, 0) + times

    def get_group(self, group_id: int) -> Optional[TabGroup]:
        return self._groups.get(group_id)

    def list_groups(self, window_id: Optional[int] = None) -> List[TabGroup]:
        return [g for g in self._groups.values() if window_id is None or g.window_id == window_id]

    def members(self, group_id: int) -> List[int]:
        return [t.id for t in self._tabs.values() if t.group_id == group_id]

    def mutation_count(self) -> int:
        return len(self.calls)

    # --- internals ---

    def _maybe_fail(self, method: str) -> None:
        remaining = self._failures.get(method, 0)
        if remaining > 0:
            self._failures[method] = remaining - 1
            raise TabStoreError(f"{method} failed: host is busy")

    def _require_tab(self, tab_id: int) -> Tab:
        tab = self._tabs.get(tab_id)
        if tab is None:
            raise TabNotFoundError(f"No tab with id: {tab_id}")
        return tab

    def _drop_empty_groups(self) -> None:
        used = {t.group_id for t in self._tabs.values()}
        for group_id in list(self._groups):
            if group_id not in used:
                del self._groups[group_id]

    # --- TabStore ---

    async def list_tabs(self, window_id: Optional[int] = None) -> List[Tab]:
        self._maybe_fail("list_tabs")
        return [
            tab.model_copy()
            for tab in self._tabs.values()
            if window_id is None or tab.window_id == window_id
        ]

    async def get_tab(self, tab_id: int) -> Tab:
        self._maybe_fail("get_tab")
        return self._require_tab(tab_id).model_copy()

    async def group_tabs(
        self,
        tab_ids: Sequence[int],
        group_id: Optional[int] = None,
        window_id: Optional[int] = None,
    ) -> int:
        self.calls.append(StoreCall("group_tabs", (tuple(tab_ids), group_id, window_id)))
        self._maybe_fail("group_tabs")
        tabs = [self._require_tab(tab_id) for tab_id in tab_ids]
        if not tabs:
            raise TabStoreError("No tabs given to group")

        if group_id is None:
            group = TabGroup(id=self._next_group_id, window_id=window_id or tabs[0].window_id)
            self._groups[group.id] = group
            self._next_group_id += 1
        else:
            group = self._groups.get(group_id)
            if group is None:
                raise TabStoreError(f"No group with id: {group_id}")

        for tab in tabs:
            tab.group_id = group.id
            tab.window_id = group.window_id
        self._drop_empty_groups()
        return group.id

    async def ungroup_tabs(self, tab_ids: Sequence[int]) -> None:
        self.calls.append(StoreCall("ungroup_tabs", (tuple(tab_ids),)))
        self._maybe_fail("ungroup_tabs")
        for tab_id in tab_ids:
            self._require_tab(tab_id).group_id = TAB_GROUP_ID_NONE
        self._drop_empty_groups()

    async def update_group(
        self,
        group_id: int,
        title: Optional[str] = None,
        color: Optional[GroupColor] = None,
        collapsed: Optional[bool] = None,
    ) -> TabGroup:
        self.calls.append(StoreCall("update_group", (group_id, title, color, collapsed)))
        self._maybe_fail("update_group")
        group = self._groups.get(group_id)
        if group is None:
            raise TabStoreError(f"No group with id: {group_id}")
        if title is not None:
            group.title = title
        if color is not None:
            group.color = color
        if collapsed is not None:
            group.collapsed = collapsed
        return group.model_copy()

    async def fetch_favicon_pixels(self, page_url: str) -> ColorSample:
        if callable(self._favicons):
            return await self._favicons(page_url)
        sample = self._favicons.get(page_url)
        if sample is None:
            raise ClassificationError(f"No favicon for {page_url}")
        return sample
