from enum import Enum
from typing import NamedTuple, Optional

from pydantic import BaseModel, Field

# Host sentinel for "this tab is not in any group"
TAB_GROUP_ID_NONE = -1


class GroupColor(Enum):
    """Colors a host tab group can take. Order is the classifier's tie-break order."""

    GREY = "grey"
    BLUE = "blue"
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"
    PINK = "pink"
    PURPLE = "purple"
    CYAN = "cyan"
    ORANGE = "orange"


class Tab(BaseModel):
    id: int
    url: str = Field(default="")
    # Set while the tab is mid-navigation; holds the new destination
    pending_url: Optional[str] = None
    window_id: int
    group_id: int = TAB_GROUP_ID_NONE

    @property
    def effective_url(self) -> str:
        return self.pending_url or self.url or ""

    @property
    def is_grouped(self) -> bool:
        return self.group_id != TAB_GROUP_ID_NONE


class TabGroup(BaseModel):
    id: int
    window_id: int
    title: str = Field(default="")
    color: GroupColor = GroupColor.GREY
    collapsed: bool = False


class ColorSample(NamedTuple):
    """Decoded RGBA pixels of a small icon, row-major, 4 bytes per pixel."""

    pixels: bytes
    width: int
    height: int
