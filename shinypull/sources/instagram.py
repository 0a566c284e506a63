"""
Instagram profile scraper using Playwright.

Counts are read from the rendered profile header; the og:description meta
tag ("1M Followers, 60 Following, 351 Posts - See Instagram photos and
videos from Name (@user)") is the fallback.
"""

import re
from typing import Any, Dict, Optional

from playwright.async_api import async_playwright, Browser, Error as PlaywrightError, Page, Playwright
from loguru import logger

from ..errors import NetworkError, NotFoundError, ParseError, UpstreamHTTPError
from ..models.schemas import CreatorSnapshot, Platform
from ..utils.parsers import decode_html_entities, parse_human_number
from ..utils.ua_rotation import ua_rotator
from .base import PlatformClient
from .normalizer import normalize_instagram

INSTAGRAM_PROFILE_URL = "https://www.instagram.com/{username}/"

OG_STATS_PATTERN = re.compile(
    r'^([\d.,]+[KMB]?)\s+Followers?,\s*([\d.,]+[KMB]?)\s+Following,\s*([\d.,]+[KMB]?)\s+Posts?',
    re.IGNORECASE,
)
OG_NAME_PATTERN = re.compile(r'from\s+(.+?)\s*\(@')
HEADER_COUNT_PATTERN = re.compile(r'([\d.,]+\s*[KMB]?)\s+(followers|following|posts)', re.IGNORECASE)

HEADER_SCRIPT = """
() => {
    const header = document.querySelector('header');
    const meta = (prop) => {
        const el = document.querySelector(`meta[property="${prop}"]`);
        return el ? el.content : null;
    };
    const img = header ? header.querySelector('img') : null;
    return {
        header_text: header ? header.innerText : '',
        og_description: meta('og:description'),
        og_title: meta('og:title'),
        og_image: meta('og:image'),
        profile_image: img ? img.src : null,
        is_verified: !!(header && header.querySelector('svg[aria-label="Verified"]')),
    };
}
"""


def parse_og_description(content: Optional[str]) -> Optional[Dict[str, Any]]:
    """Parse counts and display name out of an og:description value."""
    if not content:
        return None
    text = decode_html_entities(content).strip()
    match = OG_STATS_PATTERN.match(text)
    if not match:
        return None

    followers, following, posts = (parse_human_number(group) for group in match.groups())
    data = {'followers': followers, 'following': following, 'posts': posts}
    name_match = OG_NAME_PATTERN.search(text)
    if name_match:
        data['display_name'] = name_match.group(1).strip()
    return data


def parse_header_counts(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Parse "1.2M followers" style counts from the profile header text."""
    if not text:
        return None
    counts = {}
    for number, label in HEADER_COUNT_PATTERN.findall(text.replace('\n', ' ')):
        key = label.lower()
        if key not in counts:
            counts[key] = parse_human_number(number)
    if counts.get('followers') is None:
        return None
    return counts


def extract_profile(raw: Dict[str, Any], username: str) -> Dict[str, Any]:
    """
    Combine header counts with the og:description fallback.

    Raises:
        ParseError: neither source produced a follower count
    """
    data = parse_header_counts(raw.get('header_text'))
    og = parse_og_description(raw.get('og_description'))
    if data is None and og is None:
        raise ParseError('instagram', f"Could not parse profile stats for {username}", username)

    if data is None:
        data = og
    elif og:
        data.setdefault('display_name', og.get('display_name'))
        for key in ('following', 'posts'):
            if data.get(key) is None:
                data[key] = og.get(key)

    if not data.get('display_name') and raw.get('og_title'):
        title_match = re.match(r'^(.+?)\s*\(@', decode_html_entities(raw['og_title']))
        if title_match:
            data['display_name'] = title_match.group(1).strip()

    data['profile_image'] = raw.get('profile_image') or raw.get('og_image')
    data['is_verified'] = bool(raw.get('is_verified'))
    return data


class InstagramClient(PlatformClient):
    """Headless Chromium scraper; the browser is launched on first use."""

    platform = Platform.INSTAGRAM

    def __init__(self, headless: bool = True, navigation_timeout: int = 30000, settle_ms: int = 3000):
        """
        Initialize Instagram client.

        Args:
            headless: Run Chromium headless
            navigation_timeout: Page navigation timeout in milliseconds
            settle_ms: Extra wait after network idle for the header to render
        """
        super().__init__()
        self.headless = headless
        self.navigation_timeout = navigation_timeout
        self.settle_ms = settle_ms
        self._playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None

    async def _ensure_browser(self) -> Browser:
        if not self.browser:
            self._playwright = await async_playwright().start()
            self.browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=['--no-sandbox', '--disable-dev-shm-usage']
            )
        return self.browser

    async def _read_page(self, page: Page, username: str) -> Dict[str, Any]:
        await page.set_extra_http_headers({'User-Agent': ua_rotator.get_agent_for_platform('instagram')})
        await page.set_viewport_size({'width': 1920, 'height': 1080})

        url = INSTAGRAM_PROFILE_URL.format(username=username)
        try:
            response = await page.goto(url, wait_until='networkidle', timeout=self.navigation_timeout)
        except PlaywrightError as e:
            raise NetworkError(self.platform.value, f"Navigation failed: {e}", username) from e
        if response is not None and response.status == 404:
            raise NotFoundError(self.platform.value, f"{username} not found (HTTP 404)", username)
        if response is not None and response.status >= 400:
            raise UpstreamHTTPError(self.platform.value, response.status, await response.text(), username)

        await page.wait_for_timeout(self.settle_ms)
        try:
            return await page.evaluate(HEADER_SCRIPT)
        except PlaywrightError as e:
            raise ParseError(self.platform.value, f"Could not read profile header: {e}", username) from e

    async def fetch_profile(self, identifier: str) -> CreatorSnapshot:
        username = identifier.strip().lstrip('@')
        browser = await self._ensure_browser()
        page = await browser.new_page()
        try:
            raw = await self._read_page(page, username)
        finally:
            await page.close()

        data = extract_profile(raw, username)
        logger.debug(f"instagram: {username} has {data.get('followers')} followers")
        return normalize_instagram(data, username)

    async def close(self) -> None:
        """Close browser if open."""
        if self.browser:
            await self.browser.close()
            self.browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
