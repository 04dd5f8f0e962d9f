import asyncio
from typing import Any, Awaitable, Callable, NamedTuple, Optional, Tuple, Union

from rich.markup import escape

from tab_grouper.errors import Decision, ErrorKind, classify_failure
from tab_grouper.retry import COLLAPSE_RETRY, SINGLE_ATTEMPT, RetryPolicy, RetryResult, retry
from tab_grouper.store import TabStore
from tab_grouper.types.tab import GroupColor
from tab_grouper.utils.logger import logger


class GroupTabs(NamedTuple):
    tab_ids: Tuple[int, ...]
    group_id: Optional[int] = None  # None creates a new group
    window_id: Optional[int] = None


class UngroupTabs(NamedTuple):
    tab_ids: Tuple[int, ...]


class UpdateGroup(NamedTuple):
    group_id: int
    title: Optional[str] = None
    color: Optional[GroupColor] = None


class CollapseGroup(NamedTuple):
    group_id: int


Mutation = Union[GroupTabs, UngroupTabs, UpdateGroup, CollapseGroup]


class MutationOutcome(NamedTuple):
    mutation: Mutation
    result: RetryResult


def policy_for(mutation: Mutation) -> RetryPolicy:
    """Collapse is retried; every other mutation is attempted once per event."""
    retryable = isinstance(mutation, CollapseGroup)
    if classify_failure(ErrorKind.TRANSIENT_STORE, retryable=retryable) is Decision.RETRY:
        return COLLAPSE_RETRY
    return SINGLE_ATTEMPT


class MutationExecutor:
    """Applies mutations to a TabStore.

    A failed mutation is logged and dropped; the caller carries on as if it had
    no effect and the next event recomputes whatever is still needed.
    """

    def __init__(self, store: TabStore, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.store = store
        self._sleep = sleep

    def _operation(self, mutation: Mutation):
        store = self.store
        if isinstance(mutation, GroupTabs):
            return lambda: store.group_tabs(
                list(mutation.tab_ids), group_id=mutation.group_id, window_id=mutation.window_id
            )
        if isinstance(mutation, UngroupTabs):
            return lambda: store.ungroup_tabs(list(mutation.tab_ids))
        if isinstance(mutation, UpdateGroup):
            return lambda: store.update_group(
                mutation.group_id, title=mutation.title, color=mutation.color
            )
        if isinstance(mutation, CollapseGroup):
            return lambda: store.update_group(mutation.group_id, collapsed=True)
        raise TypeError(f"Unknown mutation: {mutation!r}")

    async def apply(self, mutation: Mutation) -> RetryResult:
        logger.debug(f"Applying {mutation}")
        result = await retry(self._operation(mutation), policy_for(mutation), sleep=self._sleep)
        if not result:
            logger.warning(
                f"Abandoned {type(mutation).__name__} after {result.attempts} attempt(s): "
                f"{escape(str(result.error))}"
            )
        return result
