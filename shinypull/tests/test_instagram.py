"""
Tests for Instagram scraper functionality.
"""

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError
from unittest.mock import AsyncMock, MagicMock

from shinypull.errors import NetworkError, NotFoundError, ParseError, UpstreamHTTPError
from shinypull.models.schemas import Platform
from shinypull.sources.instagram import (
    InstagramClient, extract_profile, parse_header_counts, parse_og_description
)

OG_DESCRIPTION = "1M Followers, 60 Following, 351 Posts - See Instagram photos and videos from Jane Doe (&#064;janedoe)"


class TestInstagramParsing:
    """Test profile count parsing."""

    def test_parse_og_description(self):
        """Test counts and display name from og:description."""
        data = parse_og_description(OG_DESCRIPTION)

        assert data['followers'] == 1000000
        assert data['following'] == 60
        assert data['posts'] == 351
        assert data['display_name'] == 'Jane Doe'

    def test_parse_og_description_unrelated_text(self):
        """Test non-profile descriptions are ignored."""
        assert parse_og_description("Create an account or log in to Instagram") is None
        assert parse_og_description(None) is None

    def test_parse_header_counts(self):
        """Test rendered header counts."""
        counts = parse_header_counts("janedoe\nFollow\n351 posts\n1.2M followers\n60 following")

        assert counts == {'posts': 351, 'followers': 1200000, 'following': 60}

    def test_parse_header_counts_without_followers(self):
        """Test a header without a follower count is unusable."""
        assert parse_header_counts("351 posts") is None
        assert parse_header_counts("") is None

    def test_extract_profile_prefers_header(self):
        """Test header counts win and og fills the gaps."""
        data = extract_profile({
            'header_text': '1.2M followers',
            'og_description': OG_DESCRIPTION,
            'profile_image': 'https://cdn.example/pfp.jpg',
            'is_verified': True,
        }, 'janedoe')

        assert data['followers'] == 1200000
        assert data['posts'] == 351
        assert data['display_name'] == 'Jane Doe'
        assert data['profile_image'] == 'https://cdn.example/pfp.jpg'
        assert data['is_verified'] is True

    def test_extract_profile_og_fallback(self):
        """Test og:description alone is enough, og:title supplies the name."""
        data = extract_profile({
            'header_text': '',
            'og_description': '5,432 Followers, 12 Following, 40 Posts',
            'og_title': 'Small Account (@small) • Instagram photos and videos',
            'og_image': 'https://cdn.example/og.jpg',
        }, 'small')

        assert data['followers'] == 5432
        assert data['display_name'] == 'Small Account'
        assert data['profile_image'] == 'https://cdn.example/og.jpg'

    def test_extract_profile_nothing_parsable(self):
        """Test a login wall raises ParseError."""
        with pytest.raises(ParseError):
            extract_profile({'header_text': 'Log in', 'og_description': None}, 'private')


class TestInstagramClient:
    """Test the Playwright-backed client with a mocked browser."""

    def make_client(self, status=200, raw=None):
        response = MagicMock()
        response.status = status
        response.text = AsyncMock(return_value='blocked')

        page = MagicMock()
        page.set_extra_http_headers = AsyncMock()
        page.set_viewport_size = AsyncMock()
        page.goto = AsyncMock(return_value=response)
        page.wait_for_timeout = AsyncMock()
        page.evaluate = AsyncMock(return_value=raw or {'og_description': OG_DESCRIPTION})
        page.close = AsyncMock()

        browser = MagicMock()
        browser.new_page = AsyncMock(return_value=page)
        browser.close = AsyncMock()

        client = InstagramClient(settle_ms=0)
        client.browser = browser
        return client, page

    @pytest.mark.asyncio
    async def test_fetch_profile(self):
        """Test a rendered profile becomes a snapshot."""
        client, page = self.make_client()

        snapshot = await client.fetch_profile('@janedoe')

        assert snapshot.platform == Platform.INSTAGRAM
        assert snapshot.platform_id == 'janedoe'
        assert snapshot.followers == 1000000
        assert page.goto.call_args[0][0] == 'https://www.instagram.com/janedoe/'
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fetch_profile_not_found(self):
        """Test a 404 page raises NotFoundError and still closes the page."""
        client, page = self.make_client(status=404)

        with pytest.raises(NotFoundError):
            await client.fetch_profile('ghost')
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fetch_profile_rate_limited(self):
        """Test a 429 page is a rate-limited upstream error."""
        client, _ = self.make_client(status=429)

        with pytest.raises(UpstreamHTTPError) as excinfo:
            await client.fetch_profile('janedoe')
        assert excinfo.value.is_rate_limited

    @pytest.mark.asyncio
    async def test_navigation_timeout_is_a_network_error(self):
        """Test a Playwright navigation timeout becomes a NetworkError and the page is closed."""
        client, page = self.make_client()
        page.goto = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 30000ms exceeded."))

        with pytest.raises(NetworkError):
            await client.fetch_profile('janedoe')
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_evaluate_failure_is_a_parse_error(self):
        """Test a script error while reading the header becomes a ParseError."""
        client, page = self.make_client()
        page.evaluate = AsyncMock(side_effect=PlaywrightError("Execution context was destroyed"))

        with pytest.raises(ParseError):
            await client.fetch_profile('janedoe')

    @pytest.mark.asyncio
    async def test_close(self):
        """Test close shuts the browser down."""
        client, _ = self.make_client()
        browser = client.browser

        await client.close()

        browser.close.assert_awaited_once()
        assert client.browser is None
