"""
User agent rotation for scraper requests.
"""

import random
from typing import Dict, List, Optional

from loguru import logger


class UserAgentRotator:
    """Rotates realistic desktop browser user agents."""

    def __init__(self, custom_agents: Optional[List[str]] = None):
        """
        Initialize user agent rotator.

        Args:
            custom_agents: Custom list of user agents to use
        """
        self.agents = custom_agents or self._get_default_agents()
        logger.debug(f"Initialized UserAgentRotator with {len(self.agents)} agents")

    def _get_default_agents(self) -> List[str]:
        """Get default list of realistic user agents."""
        return [
            # Chrome on Windows
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",

            # Chrome on macOS
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",

            # Firefox
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0",

            # Safari on macOS
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",

            # Chrome on Linux
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
        ]

    def get_random_agent(self) -> str:
        """Get a random user agent."""
        return random.choice(self.agents)

    def get_agent_for_platform(self, platform: str) -> str:
        """
        Get user agent suited to a scraped platform.

        TikTok and Instagram both serve their hydration data most reliably
        to desktop Chrome.
        """
        if platform.lower() in ("tiktok", "instagram"):
            chrome_agents = [agent for agent in self.agents if "Chrome" in agent and "Edg" not in agent]
            return random.choice(chrome_agents) if chrome_agents else self.get_random_agent()
        return self.get_random_agent()

    def browser_headers(self, platform: str) -> Dict[str, str]:
        """Headers for a plain-HTTP profile page request."""
        return {
            'User-Agent': self.get_agent_for_platform(platform),
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.9',
        }


# Global user agent rotator instance
ua_rotator = UserAgentRotator()
