from typing import Any, NamedTuple, Optional, Union

from rich.markup import escape

from tab_grouper.engine import GroupingEngine, ReconcileReport
from tab_grouper.utils.logger import logger

GROUP_ALL_COMMAND = "group_all"
GROUP_NOW_MESSAGE = "group_now"
PREFERENCE_UPDATED_MESSAGE = "preference_updated"
INSTALL_REASON = "install"


class TabCreated(NamedTuple):
    tab_id: int


class TabUpdated(NamedTuple):
    tab_id: int
    url_changed: bool = True


class TabRemoved(NamedTuple):
    tab_id: int
    window_id: Optional[int] = None


class TabActivated(NamedTuple):
    tab_id: int
    window_id: Optional[int] = None


class Installed(NamedTuple):
    reason: str = INSTALL_REASON


class Command(NamedTuple):
    name: str


class Message(NamedTuple):
    msg: str
    id: Optional[str] = None  # preference key, for preference_updated
    value: Any = None


Event = Union[TabCreated, TabUpdated, TabRemoved, TabActivated, Installed, Command, Message]


class EventRouter:
    """Routes host events, commands and popup messages to the grouping engine."""

    def __init__(self, engine: GroupingEngine):
        self.engine = engine

    async def dispatch(self, event: Event) -> Optional[ReconcileReport]:
        """Handle one event. Never raises; returns the pass report, or None if nothing ran."""
        try:
            return await self._route(event)
        except Exception as e:
            logger.error(
                f"Error handling {type(event).__name__}: {type(e).__name__} - {escape(str(e))}"
            )
            return None

    async def _route(self, event: Event) -> Optional[ReconcileReport]:
        engine = self.engine

        if isinstance(event, TabCreated):
            return await engine.reconcile_one(event.tab_id)

        if isinstance(event, TabUpdated):
            # Title, favicon and loading-state updates don't move tabs
            if not event.url_changed:
                return None
            return await engine.reconcile_one(event.tab_id)

        if isinstance(event, TabRemoved):
            return await engine.on_tab_removed(event.window_id)

        if isinstance(event, TabActivated):
            return await engine.on_tab_activated(event.tab_id, event.window_id)

        if isinstance(event, Installed):
            if event.reason == INSTALL_REASON:
                return await engine.reconcile_all()
            return None

        if isinstance(event, Command):
            if event.name == GROUP_ALL_COMMAND:
                return await engine.reconcile_all()
            logger.debug(f"Ignoring unknown command: {event.name}")
            return None

        if isinstance(event, Message):
            if event.msg == GROUP_NOW_MESSAGE:
                return await engine.reconcile_all()
            if event.msg == PREFERENCE_UPDATED_MESSAGE:
                # Turning grouping back on catches up on everything missed while off
                if event.id == "enabled" and event.value is True:
                    return await engine.reconcile_all()
                return None
            logger.debug(f"Ignoring unknown message: {event.msg}")
            return None

        logger.debug(f"Ignoring unknown event: {event!r}")
        return None
