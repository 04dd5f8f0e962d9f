import io
from typing import Optional
from urllib.parse import urlencode

import aiohttp
from PIL import Image, UnidentifiedImageError
from rich.markup import escape

from tab_grouper.color import FALLBACK_COLOR, classify_sample
from tab_grouper.errors import ClassificationError
from tab_grouper.types.tab import ColorSample, GroupColor
from tab_grouper.utils.logger import logger

# Icon edge length requested from the favicon service
FAVICON_SIZE = 16

# Total time allowed for one favicon download (seconds)
FAVICON_FETCH_TIMEOUT_S = 2


def favicon_url(page_url: str, service_url: str, size: int = FAVICON_SIZE) -> str:
    """Build the browser favicon-service URL for a page.

    Args:
        page_url: The page whose icon is wanted
        service_url: Base URL of the favicon endpoint, e.g. ``chrome-extension://<id>/_favicon/``
        size: Requested icon size in pixels
    """
    query = urlencode({"pageUrl": page_url, "size": str(size)})
    separator = "&" if "?" in service_url else "?"
    return f"{service_url}{separator}{query}"


def decode_icon(data: bytes) -> ColorSample:
    """Decode image bytes (PNG, ICO, ...) into RGBA pixels."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            rgba = image.convert("RGBA")
            return ColorSample(pixels=rgba.tobytes(), width=rgba.width, height=rgba.height)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ClassificationError(f"Could not decode favicon: {e}") from e


async def fetch_icon_bytes(url: str, timeout: float = FAVICON_FETCH_TIMEOUT_S) -> bytes:
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
                if response.status != 200:
                    raise ClassificationError(f"Favicon request failed: HTTP {response.status}")
                return await response.read()
    except aiohttp.ClientError as e:
        raise ClassificationError(f"Failed to fetch favicon: {e}") from e
    except TimeoutError as e:
        raise ClassificationError("Favicon request timed out") from e


class HttpFaviconSource:
    """Fetches favicons from a browser favicon service over HTTP."""

    def __init__(self, service_url: str, size: int = FAVICON_SIZE):
        self.service_url = service_url
        self.size = size

    async def __call__(self, page_url: str) -> ColorSample:
        url = favicon_url(page_url, self.service_url, self.size)
        data = await fetch_icon_bytes(url)
        return decode_icon(data)


async def favicon_color(store, page_url: Optional[str]) -> GroupColor:
    """Group color for a page's favicon. Never raises: any failure yields grey.

    Args:
        store: A TabStore; its ``fetch_favicon_pixels`` supplies the icon
        page_url: The representative tab's effective URL
    """
    if not page_url:
        return FALLBACK_COLOR

    try:
        sample = await store.fetch_favicon_pixels(page_url)
        return classify_sample(sample)
    except Exception as e:
        logger.debug(
            f"Favicon color for {escape(page_url)} unavailable ({escape(str(e))}); using grey"
        )
        return FALLBACK_COLOR
