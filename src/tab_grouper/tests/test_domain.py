import pytest

from tab_grouper.domain import (
    DEFAULT_SITE_NAME,
    TLD_SUFFIXES,
    is_excluded,
    parse_url,
    require_valid,
    site_name,
    split_hostname,
)
from tab_grouper.errors import InvalidUrlError
from tab_grouper.types.preferences import GroupBy


def test_site_name_strips_www_and_tld():
    assert site_name("www.example.com") == "example"


def test_site_name_compound_suffix_listed_first():
    assert site_name("news.example.co.uk", tld_suffixes=[".co.uk", ".uk"]) == "news.example"


def test_site_name_first_listed_suffix_wins():
    # No longest-match search: list order decides
    assert site_name("news.example.co.uk", tld_suffixes=[".uk", ".co.uk"]) == "news.example.co"


def test_site_name_default_list_handles_compound_suffixes():
    assert site_name("news.example.co.uk") == "news.example"
    assert site_name("shop.example.com.au") == "shop.example"


def test_site_name_only_one_suffix_removed():
    assert site_name("example.com.com", tld_suffixes=[".com"]) == "example.com"


def test_site_name_without_known_suffix_keeps_hostname():
    assert site_name("www.intranet.corp", tld_suffixes=[".com"]) == "intranet.corp"


def test_site_name_domain_mode_drops_subdomain():
    assert site_name("news.example.co.uk", GroupBy.DOMAIN) == "example"
    assert site_name("www.example.com", GroupBy.DOMAIN) == "example"


def test_site_name_ip_address():
    assert site_name("192.168.0.10") == "192.168.0.10"
    assert site_name("192.168.0.10", GroupBy.DOMAIN) == "192.168.0.10"


def test_site_name_empty():
    assert site_name("") == DEFAULT_SITE_NAME


@pytest.mark.parametrize(
    "hostname, expected",
    [
        ("news.example.co.uk", ("news", "example", "co.uk")),
        ("www.example.com", ("www", "example", "com")),
        ("example.com", ("", "example", "com")),
        ("a.b.example.xyz", ("a.b", "example", "xyz")),
        ("localhost", ("", "localhost", "")),
    ],
)
def test_split_hostname(hostname, expected):
    assert split_hostname(hostname) == expected


def test_tld_suffixes_compound_before_single():
    assert TLD_SUFFIXES.index(".co.uk") < TLD_SUFFIXES.index(".uk")
    assert TLD_SUFFIXES.index(".com.au") < TLD_SUFFIXES.index(".com")


@pytest.mark.parametrize(
    "url",
    [
        "chrome://settings",
        "chrome-extension://abcdef/popup.html",
        "edge://flags",
        "brave://rewards",
        "opera://about",
        "vivaldi://settings",
        "extension://whatever",
    ],
)
def test_excluded_urls(url):
    assert is_excluded(url)
    assert parse_url(url).valid is False


@pytest.mark.parametrize("url", ["", None, "about:blank", "not a url", "example.com/path", "http://[::1"])
def test_invalid_urls(url):
    parsed = parse_url(url)
    assert parsed.valid is False
    assert parsed.site_name == DEFAULT_SITE_NAME
    assert parsed.grouping_key == ""


def test_parse_url_fields():
    parsed = parse_url("https://News.Example.co.uk/world/story?id=1")
    assert parsed.valid
    assert parsed.hostname == "news.example.co.uk"
    assert parsed.protocol == "https"
    assert parsed.path == "world/story"
    assert parsed.subdomain == "news"
    assert parsed.host == "example"
    assert parsed.tld == "co.uk"
    assert parsed.parent_domain == "example.co.uk"
    assert parsed.site_name == "news.example"
    assert parsed.grouping_key == "news.example.co.uk"


def test_grouping_key_by_domain():
    a = parse_url("https://mail.example.com/inbox", GroupBy.DOMAIN)
    b = parse_url("https://docs.example.com/", GroupBy.DOMAIN)
    assert a.grouping_key == b.grouping_key == "example.com"
    assert a.site_name == "example"


def test_grouping_key_by_subdomain_keeps_hosts_apart():
    a = parse_url("https://mail.example.com/inbox")
    b = parse_url("https://docs.example.com/")
    assert a.grouping_key != b.grouping_key


def test_parse_url_ignores_port_and_credentials():
    parsed = parse_url("http://user:pw@localhost:8080/app")
    assert parsed.valid
    assert parsed.hostname == "localhost"
    assert parsed.site_name == "localhost"


def test_parse_url_is_deterministic():
    url = "https://www.github.com/org/repo"
    assert parse_url(url) == parse_url(url)


def test_require_valid():
    assert require_valid("https://example.com").hostname == "example.com"
    with pytest.raises(InvalidUrlError):
        require_valid("chrome://newtab")
