from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


class GroupBy(Enum):
    SUBDOMAIN = "subdomain"  # keep the subdomain, group by full hostname
    DOMAIN = "domain"  # drop the subdomain, group by registrable domain


class Preferences(BaseModel):
    """User preferences read at the start of every reconciliation pass.

    Note the inverted naming of ``auto_close_groups``: when it is True, groups
    left with a single tab stay open; when it is False, single-tab groups are
    dissolved.
    """

    # Unknown keys from older stored payloads are dropped, not rejected
    model_config = ConfigDict(extra="ignore")

    enabled: bool = True
    auto_close_groups: bool = True
    auto_collapse_groups: bool = False
    group_by: GroupBy = GroupBy.SUBDOMAIN
    # Stored and round-tripped; grouping does not consult it
    sort_alphabetically: bool = False

    @classmethod
    def from_partial(cls, data: Dict[str, Any] | None) -> "Preferences":
        """Build preferences from a possibly partial mapping, filling in defaults."""
        if not data:
            return cls()
        known = {}
        for key, value in data.items():
            if key not in cls.model_fields:
                continue
            # Extension-style payloads wrap each value: {"enabled": {"value": true, ...}}
            if isinstance(value, dict) and "value" in value:
                value = value["value"]
            known[key] = value
        return cls(**known)
