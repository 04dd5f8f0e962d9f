import ipaddress
from typing import NamedTuple, Optional, Sequence, Tuple
from urllib.parse import urlparse

from tab_grouper.errors import InvalidUrlError
from tab_grouper.types.preferences import GroupBy

# Title used when a URL cannot be parsed at all
DEFAULT_SITE_NAME = "Group"

# Browser-internal pages are never grouped
EXCLUDED_URL_PREFIXES = (
    "chrome://",
    "chrome-extension://",
    "edge://",
    "extension://",
    "brave://",
    "opera://",
    "vivaldi://",
)

# Second-level registries that sit in front of a country code
_SECONDARY_LABELS = ("co", "com", "ac", "gov", "net", "org", "edu")
_COUNTRY_CODES = ("uk", "au", "nz", "jp", "in", "za", "br", "kr", "il", "tr", "mx", "ar", "sg")

# Scanned in order and the first match wins, so compound suffixes must precede
# their trailing label (".co.uk" before ".uk")
TLD_SUFFIXES: Tuple[str, ...] = tuple(
    f".{label}.{cc}" for cc in _COUNTRY_CODES for label in _SECONDARY_LABELS
) + (
    ".com",
    ".org",
    ".net",
    ".edu",
    ".gov",
    ".io",
    ".co",
    ".ai",
    ".app",
    ".dev",
    ".me",
    ".tv",
    ".info",
    ".biz",
    ".us",
    ".ca",
    ".uk",
    ".de",
    ".fr",
    ".es",
    ".it",
    ".nl",
    ".eu",
    ".ch",
    ".se",
    ".no",
    ".fi",
    ".dk",
    ".pl",
    ".ru",
    ".cn",
    ".au",
    ".nz",
    ".jp",
    ".in",
    ".br",
)


class ParsedUrl(NamedTuple):
    valid: bool
    hostname: str = ""
    site_name: str = DEFAULT_SITE_NAME
    # What tabs are compared on; equal keys mean "same group"
    grouping_key: str = ""
    protocol: str = ""
    path: str = ""
    subdomain: str = ""
    host: str = ""
    tld: str = ""
    parent_domain: str = ""


INVALID = ParsedUrl(valid=False)


def is_excluded(url: str) -> bool:
    """Check if a URL points at a browser-internal page."""
    return url.startswith(EXCLUDED_URL_PREFIXES)


def _is_ip_literal(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return True


def _strip_suffix(name: str, tld_suffixes: Sequence[str]) -> Tuple[str, str]:
    """Remove the first listed suffix that matches. Returns (remainder, suffix)."""
    for suffix in tld_suffixes:
        if name.endswith(suffix) and len(name) > len(suffix):
            return name[: -len(suffix)], suffix
    return name, ""


def split_hostname(
    hostname: str, tld_suffixes: Sequence[str] = TLD_SUFFIXES
) -> Tuple[str, str, str]:
    """Split a hostname into (subdomain, host, tld).

    A listed suffix is used as the TLD when one matches; otherwise the last
    label is. ``news.example.co.uk`` -> ``("news", "example", "co.uk")``.
    """
    if _is_ip_literal(hostname):
        return "", hostname, ""

    rest, suffix = _strip_suffix(hostname, tld_suffixes)
    if suffix:
        tld = suffix.lstrip(".")
    elif "." in hostname:
        rest, tld = hostname.rsplit(".", 1)
    else:
        tld = ""

    labels = rest.split(".")
    return ".".join(labels[:-1]), labels[-1], tld


def site_name(
    hostname: str,
    group_by: GroupBy = GroupBy.SUBDOMAIN,
    tld_suffixes: Sequence[str] = TLD_SUFFIXES,
) -> str:
    """Human-readable group title for a hostname.

    Strips a leading ``www.`` and one trailing suffix from ``tld_suffixes``.
    With ``GroupBy.DOMAIN`` the subdomain is dropped as well.
    """
    if not hostname:
        return DEFAULT_SITE_NAME
    if _is_ip_literal(hostname):
        return hostname

    if group_by is GroupBy.DOMAIN:
        _, host, _ = split_hostname(hostname, tld_suffixes)
        return host

    name = hostname[4:] if hostname.startswith("www.") else hostname
    name, _ = _strip_suffix(name, tld_suffixes)
    return name


def parse_url(
    url: Optional[str],
    group_by: GroupBy = GroupBy.SUBDOMAIN,
    tld_suffixes: Sequence[str] = TLD_SUFFIXES,
) -> ParsedUrl:
    """Parse a tab URL into the values used for grouping.

    Empty, excluded, hostless or malformed URLs come back with ``valid=False``
    and the ``"Group"`` site name; callers must skip those tabs.
    """
    if not url or is_excluded(url):
        return INVALID

    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return INVALID

    if not hostname:
        return INVALID

    subdomain, host, tld = split_hostname(hostname, tld_suffixes)
    parent_domain = f"{host}.{tld}" if tld else host
    if group_by is GroupBy.DOMAIN:
        grouping_key = parent_domain
    else:
        grouping_key = hostname

    path = parsed.path[1:] if parsed.path.startswith("/") else parsed.path

    return ParsedUrl(
        valid=True,
        hostname=hostname,
        site_name=site_name(hostname, group_by, tld_suffixes),
        grouping_key=grouping_key,
        protocol=parsed.scheme,
        path=path,
        subdomain=subdomain,
        host=host,
        tld=tld,
        parent_domain=parent_domain,
    )


def require_valid(url: Optional[str], group_by: GroupBy = GroupBy.SUBDOMAIN) -> ParsedUrl:
    """Like parse_url, but raises InvalidUrlError instead of returning an invalid result."""
    parsed = parse_url(url, group_by)
    if not parsed.valid:
        raise InvalidUrlError(f"Cannot group URL: {url!r}")
    return parsed
