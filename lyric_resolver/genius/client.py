"""
Thin Genius HTTP client

Two calls, both routed through a RateLimitedGateway:
- search(): GET {api_base_url}/search?q=... returning the raw hit objects
- fetch_page(): GET on a song page URL returning the full response

The client does not interpret hits or pages; scoring lives in scorer.py
and page parsing in scraper.py.
"""

import json
from typing import Any, Dict, List, Optional

from ..core.exceptions import NetworkFailure
from ..core.gateway import GatewayResponse, RateLimitedGateway
from ..utils.logger import get_logger


class GeniusClient:
    """
    Genius search endpoint and page fetcher

    Page fetches may use a separate gateway so scraping is throttled
    independently of API calls; when none is given both share one window.
    """

    def __init__(
        self,
        gateway: RateLimitedGateway,
        page_gateway: Optional[RateLimitedGateway] = None,
        access_token: str = "",
        api_base_url: str = "https://api.genius.com",
        per_page: int = 10
    ):
        """
        Initialize the client

        Args:
            gateway: Gateway used for API search calls
            page_gateway: Gateway used for page fetches (defaults to gateway)
            access_token: Bearer token sent with search calls when non-empty
            api_base_url: Base URL of the Genius API
            per_page: Hits requested per search
        """
        self.logger = get_logger(__name__)
        self.gateway = gateway
        self.page_gateway = page_gateway or gateway
        self.access_token = access_token
        self.api_base_url = api_base_url.rstrip('/')
        self.per_page = per_page

    def _auth_headers(self) -> Dict[str, str]:
        if self.access_token:
            return {'Authorization': f"Bearer {self.access_token}"}
        return {}

    async def search(self, query: str) -> List[Dict[str, Any]]:
        """
        Run one search against the Genius API

        Args:
            query: Search text

        Returns:
            Raw hit objects in response order (empty when there are none)

        Raises:
            NetworkFailure: On transport errors, non-2xx status or unreadable JSON
            RateLimitExceeded: When the gateway rejects the call
        """
        url = f"{self.api_base_url}/search"
        response = await self.gateway.request(
            'GET',
            url,
            params={'q': query, 'per_page': str(self.per_page)},
            headers={'Accept': 'application/json', **self._auth_headers()}
        )

        if not response.ok:
            raise NetworkFailure(
                f"Genius search failed with HTTP {response.status}",
                details={'query': query, 'url': url},
                status_code=response.status
            )

        try:
            payload = json.loads(response.text)
        except ValueError as e:
            raise NetworkFailure(
                f"Genius search returned invalid JSON: {e}",
                details={'query': query, 'url': url},
                status_code=response.status
            ) from e

        body = payload.get('response') if isinstance(payload, dict) else None
        hits = body.get('hits') if isinstance(body, dict) else None
        if not isinstance(hits, list):
            self.logger.debug(f"Search response for '{query}' has no hits list")
            return []

        return hits

    async def fetch_page(self, url: str, headers: Optional[Dict[str, str]] = None) -> GatewayResponse:
        """
        Fetch a song page

        Args:
            url: Page URL
            headers: Request headers (browser identity)

        Returns:
            GatewayResponse whatever the HTTP status

        Raises:
            NetworkFailure: On transport errors
            RateLimitExceeded: When the gateway rejects the call
        """
        return await self.page_gateway.request('GET', url, headers=headers or {})
