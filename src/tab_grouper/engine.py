"""Grouping engine: reconciles the host's tabs into one group per grouping key.

The engine keeps no state between events. Each entry point loads the
preferences, reads a fresh snapshot from the store, works out the mutations
needed to converge, and applies them one at a time. Running a pass again on
an unchanged snapshot produces no further mutations, and any mutation that
failed is simply recomputed by the next event.
"""

from typing import Awaitable, Callable, Dict, List, NamedTuple, Optional

from rich.markup import escape

from tab_grouper.domain import ParsedUrl, parse_url
from tab_grouper.errors import TabStoreError
from tab_grouper.favicon import favicon_color
from tab_grouper.mutations import (
    CollapseGroup,
    GroupTabs,
    Mutation,
    MutationExecutor,
    MutationOutcome,
    UngroupTabs,
    UpdateGroup,
)
from tab_grouper.retry import Exhausted, RetryResult
from tab_grouper.store import TabStore
from tab_grouper.types.preferences import Preferences
from tab_grouper.types.tab import TAB_GROUP_ID_NONE, GroupColor, Tab
from tab_grouper.utils.logger import logger

PreferenceLoader = Callable[[], Preferences]
ColorPicker = Callable[[str], Awaitable[GroupColor]]


class TabEntry(NamedTuple):
    tab: Tab
    parsed: ParsedUrl

    @property
    def key(self) -> str:
        return self.parsed.grouping_key


class ReconcileReport:
    """What one reconciliation pass tried to do, and how each attempt went."""

    def __init__(self, entry_point: str):
        self.entry_point = entry_point
        self.outcomes: List[MutationOutcome] = []

    @property
    def mutations(self) -> List[Mutation]:
        return [outcome.mutation for outcome in self.outcomes]

    @property
    def failed(self) -> List[Mutation]:
        return [outcome.mutation for outcome in self.outcomes if not outcome.result]

    def __len__(self) -> int:
        return len(self.outcomes)

    def __repr__(self) -> str:
        return f"ReconcileReport({self.entry_point!r}, mutations={self.mutations!r})"


class GroupingEngine:
    def __init__(
        self,
        store: TabStore,
        load_preferences: PreferenceLoader = Preferences,
        executor: Optional[MutationExecutor] = None,
        color_picker: Optional[ColorPicker] = None,
    ):
        """
        Args:
            store: The host tab/group store
            load_preferences: Called at the start of every pass
            executor: Applies mutations; defaults to one bound to ``store``
            color_picker: Maps a page URL to a group color; defaults to favicon classification
        """
        self.store = store
        self._load_preferences = load_preferences
        self.executor = executor or MutationExecutor(store)
        self._color_picker = color_picker or (lambda url: favicon_color(store, url))

    # --- helpers ---

    def _preferences(self) -> Preferences:
        try:
            return self._load_preferences()
        except Exception as e:
            logger.warning(f"Could not load preferences, using defaults: {escape(str(e))}")
            return Preferences()

    async def _snapshot(
        self, prefs: Preferences, window_id: Optional[int] = None
    ) -> Optional[List[TabEntry]]:
        """All tabs of a window (or every window), parsed. None if the store can't be read."""
        try:
            tabs = await self.store.list_tabs(window_id)
        except TabStoreError as e:
            logger.warning(f"Could not list tabs, skipping this pass: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error listing tabs: {type(e).__name__} - {escape(str(e))}")
            return None
        return [TabEntry(tab, parse_url(tab.effective_url, prefs.group_by)) for tab in tabs]

    async def _get_tab(self, tab_id: int) -> Optional[Tab]:
        try:
            return await self.store.get_tab(tab_id)
        except TabStoreError as e:
            logger.debug(f"Tab {tab_id} is gone: {e}")
        except Exception as e:
            logger.error(
                f"Unexpected error reading tab {tab_id}: {type(e).__name__} - {escape(str(e))}"
            )
        return None

    async def _apply(self, mutation: Mutation, report: ReconcileReport) -> RetryResult:
        try:
            result = await self.executor.apply(mutation)
        except Exception as e:
            # Not a store failure the executor knows about; abandon it for this pass
            logger.error(
                f"Unexpected error applying {type(mutation).__name__}: "
                f"{type(e).__name__} - {escape(str(e))}"
            )
            result = Exhausted(attempts=1, error=e)
        report.outcomes.append(MutationOutcome(mutation, result))
        return result

    async def _pick_color(self, page_url: str) -> GroupColor:
        try:
            return await self._color_picker(page_url)
        except Exception as e:
            logger.warning(f"Color picker failed, using grey: {escape(str(e))}")
            return GroupColor.GREY

    async def _create_group(
        self, entries: List[TabEntry], window_id: int, report: ReconcileReport
    ) -> None:
        """Put ``entries`` in a new group titled and colored after the first of them."""
        tab_ids = tuple(entry.tab.id for entry in entries)
        result = await self._apply(GroupTabs(tab_ids, window_id=window_id), report)
        if not result:
            return

        representative = entries[0]
        color = await self._pick_color(representative.tab.effective_url)
        title = representative.parsed.site_name
        await self._apply(UpdateGroup(result.value, title=title, color=color), report)
        logger.info(f"Grouped {len(tab_ids)} tabs as '{title}' ({color.value})")

    @staticmethod
    def _first_group_with_key(
        entries: List[TabEntry], key: str, exclude_tab_id: Optional[int] = None
    ) -> Optional[int]:
        # Host order decides when several groups hold the key
        for entry in entries:
            if entry.tab.id == exclude_tab_id or not entry.parsed.valid:
                continue
            if entry.key == key and entry.tab.is_grouped:
                return entry.tab.group_id
        return None

    # --- entry points ---

    async def reconcile_one(self, tab_id: int) -> ReconcileReport:
        """Place one created or navigated tab into the group for its key."""
        report = ReconcileReport("reconcile_one")
        prefs = self._preferences()
        if not prefs.enabled:
            return report

        target = await self._get_tab(tab_id)
        if target is None:
            return report

        parsed = parse_url(target.effective_url, prefs.group_by)
        if not parsed.valid:
            return report

        entries = await self._snapshot(prefs, target.window_id)
        if entries is None:
            return report

        # Prefer the snapshot's copy; it is the newer read
        for entry in entries:
            if entry.tab.id == target.id:
                target = entry.tab
        key = parsed.grouping_key

        if target.is_grouped:
            groupmates = [
                entry
                for entry in entries
                if entry.tab.group_id == target.group_id and entry.tab.id != target.id
            ]
            if any(entry.parsed.valid and entry.key == key for entry in groupmates):
                return report

            # The tab no longer belongs where it is
            await self._apply(UngroupTabs((target.id,)), report)
            target.group_id = TAB_GROUP_ID_NONE
            # Tabs on excluded pages don't count toward what is left behind
            valid_mates = [entry for entry in groupmates if entry.parsed.valid]
            if len(valid_mates) == 1 and not prefs.auto_close_groups:
                leftover = valid_mates[0].tab
                await self._apply(UngroupTabs((leftover.id,)), report)
                leftover.group_id = TAB_GROUP_ID_NONE

        target_group = self._first_group_with_key(entries, key, exclude_tab_id=target.id)
        if target_group is not None:
            await self._apply(GroupTabs((target.id,), group_id=target_group), report)
            return report

        matching = [entry for entry in entries if entry.parsed.valid and entry.key == key]
        # A lone tab never forms a group
        if len(matching) < 2:
            return report

        await self._create_group(matching, target.window_id, report)
        return report

    async def reconcile_all(self, window_id: Optional[int] = None) -> ReconcileReport:
        """Group every key that has two or more tabs, window by window."""
        report = ReconcileReport("reconcile_all")
        prefs = self._preferences()
        if not prefs.enabled:
            return report

        entries = await self._snapshot(prefs, window_id)
        if entries is None:
            return report

        windows: Dict[int, List[TabEntry]] = {}
        for entry in entries:
            if entry.parsed.valid:
                windows.setdefault(entry.tab.window_id, []).append(entry)

        for wid, window_entries in windows.items():
            keys = list(dict.fromkeys(entry.key for entry in window_entries))
            for key in keys:
                same_key = [entry for entry in window_entries if entry.key == key]
                if len(same_key) < 2:
                    continue

                target_group = self._first_group_with_key(same_key, key)
                if target_group is None:
                    await self._create_group(same_key, wid, report)
                    continue

                outside = tuple(
                    entry.tab.id for entry in same_key if entry.tab.group_id != target_group
                )
                if outside:
                    await self._apply(GroupTabs(outside, group_id=target_group), report)

        return report

    async def on_tab_removed(self, window_id: Optional[int] = None) -> ReconcileReport:
        """Dissolve groups left with a single tab, unless ``auto_close_groups`` keeps them."""
        report = ReconcileReport("on_tab_removed")
        prefs = self._preferences()
        if not prefs.enabled or prefs.auto_close_groups:
            return report

        entries = await self._snapshot(prefs, window_id)
        if entries is None:
            return report

        members: Dict[int, List[int]] = {}
        for entry in entries:
            if entry.tab.is_grouped and entry.parsed.valid:
                members.setdefault(entry.tab.group_id, []).append(entry.tab.id)

        for tab_ids in members.values():
            if len(tab_ids) == 1:
                await self._apply(UngroupTabs((tab_ids[0],)), report)

        return report

    async def on_tab_activated(
        self, tab_id: int, window_id: Optional[int] = None
    ) -> ReconcileReport:
        """Collapse every group in the window except the activated tab's own."""
        report = ReconcileReport("on_tab_activated")
        prefs = self._preferences()
        if not prefs.enabled or not prefs.auto_collapse_groups:
            return report

        if window_id is None:
            activated = await self._get_tab(tab_id)
            if activated is None:
                return report
            window_id = activated.window_id

        entries = await self._snapshot(prefs, window_id)
        if entries is None:
            return report

        active = next((entry.tab for entry in entries if entry.tab.id == tab_id), None)
        if active is None:
            return report

        other_groups = dict.fromkeys(
            entry.tab.group_id
            for entry in entries
            if entry.tab.is_grouped and entry.tab.group_id != active.group_id
        )
        for group_id in other_groups:
            await self._apply(CollapseGroup(group_id), report)

        return report
