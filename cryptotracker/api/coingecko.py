"""
CoinGecko API Client

Single responsibility: communicate with the CoinGecko REST API.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import aiohttp

from ..config import config
from ..errors import CoinNotFoundError, FailureKind, PriceSourceError
from ..models import CoinMarketData, PricePoint
from ..utils import is_price, to_finite_float

logger = logging.getLogger(__name__)


@dataclass
class PriceResult:
    """
    Outcome of a batched price query.

    Either ok with a (possibly partial) price mapping, or failed with a
    failure kind and no prices at all.
    """
    prices: Dict[str, float] = field(default_factory=dict)
    failure: Optional[FailureKind] = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def failed(cls, kind: FailureKind, error: str = "") -> "PriceResult":
        return cls(prices={}, failure=kind, error=error)


def _usd(section: Any, currency: str) -> Optional[float]:
    """Pull the currency value out of a CoinGecko {"usd": ...} block."""
    if isinstance(section, dict):
        return to_finite_float(section.get(currency))
    return None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class CoinGeckoClient:
    """
    Async client for the CoinGecko API.

    Handles:
    - Batched spot prices for many coin ids in one request
    - Market data lookup for a single coin
    - Historical price series for a chart timeframe
    - 429 backoff and mapping of every failure to a FailureKind
    """

    def __init__(
        self,
        url: str = None,
        timeout: float = None,
        api_key: str = None,
        max_retries: int = None,
        session: aiohttp.ClientSession = None,
    ):
        self.url = (url or config.coingecko_url).rstrip("/")
        self.timeout = timeout or config.request_timeout_sec
        self.api_key = api_key if api_key is not None else config.coingecko_api_key
        self.max_retries = max_retries if max_retries is not None else config.max_retries
        self._session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self):
        """Create session if needed."""
        if self._session is None:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["x-cg-demo-api-key"] = self.api_key
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._owns_session = True

    async def close(self):
        """Close the HTTP session (only if this client created it)."""
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    async def _request(self, path: str, params: dict = None) -> Any:
        """
        GET a CoinGecko endpoint with 429 backoff.

        Args:
            path: Endpoint path, e.g. "/simple/price"
            params: Query parameters

        Returns:
            Decoded JSON body

        Raises:
            PriceSourceError: on any failure (kind tells which)
        """
        await self._ensure_session()
        url = f"{self.url}{path}"

        for attempt in range(self.max_retries + 1):
            try:
                async with self._session.get(url, params=params) as response:
                    if response.status == 429:
                        if attempt < self.max_retries:
                            backoff = config.rate_limit_backoff_sec * (2 ** attempt)
                            logger.warning(f"Rate limited, backing off {backoff}s")
                            await asyncio.sleep(backoff)
                            continue
                        raise PriceSourceError(
                            "Rate limited by price API", FailureKind.RATE_LIMITED, 429
                        )

                    if response.status == 404:
                        raise PriceSourceError(
                            f"Not found: {path}", FailureKind.HTTP_STATUS, 404
                        )

                    if response.status != 200:
                        raise PriceSourceError(
                            f"API error {response.status} for {path}",
                            FailureKind.HTTP_STATUS,
                            response.status,
                        )

                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        raise PriceSourceError(
                            f"Undecodable response from {path}: {e}", FailureKind.DECODE
                        ) from e

            except asyncio.TimeoutError as e:
                raise PriceSourceError(f"Timed out requesting {path}", FailureKind.TIMEOUT) from e
            except aiohttp.ClientError as e:
                raise PriceSourceError(f"Request error for {path}: {e}", FailureKind.NETWORK) from e

        # Only reachable with max_retries < 0
        raise PriceSourceError("No request attempted", FailureKind.NETWORK)

    # -------------------------------------------------------------------------
    # Public Methods
    # -------------------------------------------------------------------------

    async def get_prices(self, coin_ids: Iterable[str], vs_currency: str = None) -> PriceResult:
        """
        Get current prices for a set of coins in ONE request.

        Args:
            coin_ids: Coin identifiers (joined with commas)
            vs_currency: Quote currency (default from config)

        Returns:
            PriceResult. Coins missing from the response are simply absent.
        """
        currency = vs_currency or config.vs_currency
        ids = sorted({c for c in coin_ids if c})
        if not ids:
            return PriceResult()

        try:
            data = await self._request(
                "/simple/price",
                {"ids": ",".join(ids), "vs_currencies": currency},
            )
        except PriceSourceError as e:
            logger.warning(f"Price query for {len(ids)} coin(s) failed: {e}")
            return PriceResult.failed(e.kind, str(e))

        if not isinstance(data, dict):
            return PriceResult.failed(FailureKind.DECODE, "Expected a JSON object")

        # Response: {"bitcoin": {"usd": 51000.0}, ...}
        prices = {}
        for coin_id in ids:
            entry = data.get(coin_id)
            if isinstance(entry, dict) and is_price(entry.get(currency)):
                prices[coin_id] = float(entry[currency])

        logger.debug(f"Fetched {len(prices)}/{len(ids)} prices")
        return PriceResult(prices=prices)

    async def get_coin(self, coin_id: str) -> CoinMarketData:
        """
        Get market data for one coin.

        Raises:
            CoinNotFoundError: unknown coin id
            PriceSourceError: any other failure
        """
        currency = config.vs_currency
        try:
            data = await self._request(
                f"/coins/{coin_id}",
                {
                    "localization": "false",
                    "tickers": "false",
                    "market_data": "true",
                    "community_data": "false",
                    "developer_data": "false",
                    "sparkline": "false",
                },
            )
        except PriceSourceError as e:
            if e.status == 404:
                raise CoinNotFoundError(coin_id) from e
            raise

        market = data.get("market_data") if isinstance(data, dict) else None
        price = _usd(market.get("current_price"), currency) if isinstance(market, dict) else None
        if price is None:
            raise PriceSourceError(f"No market data for {coin_id}", FailureKind.DECODE)

        return CoinMarketData(
            coin_id=data.get("id", coin_id),
            symbol=str(data.get("symbol", "")).upper(),
            name=data.get("name", coin_id),
            price=price,
            market_cap=_usd(market.get("market_cap"), currency),
            total_volume=_usd(market.get("total_volume"), currency),
            change_24h_pct=to_finite_float(market.get("price_change_percentage_24h")),
            high_24h=_usd(market.get("high_24h"), currency),
            low_24h=_usd(market.get("low_24h"), currency),
            last_updated=_parse_timestamp(data.get("last_updated")),
        )

    async def get_market_chart(self, coin_id: str, timeframe: str = None) -> List[PricePoint]:
        """
        Get a historical price series.

        Args:
            coin_id: Coin identifier
            timeframe: "24h", "7d", "30d" or "1y" (unknown -> default)

        Returns:
            Price points in API order

        Raises:
            PriceSourceError: request failed
        """
        _, days, interval = config.resolve_timeframe(timeframe)
        data = await self._request(
            f"/coins/{coin_id}/market_chart",
            {"vs_currency": config.vs_currency, "days": days, "interval": interval},
        )

        # Response: {"prices": [[ms_timestamp, price], ...], ...}
        raw_points = data.get("prices") if isinstance(data, dict) else None
        if not isinstance(raw_points, list):
            return []

        points = []
        for item in raw_points:
            if not isinstance(item, (list, tuple)) or len(item) < 2:
                continue
            ts, price = to_finite_float(item[0]), to_finite_float(item[1])
            if ts is None or price is None:
                continue
            points.append(PricePoint(datetime.fromtimestamp(ts / 1000, tz=timezone.utc), price))
        return points

    async def ping(self) -> bool:
        """Check API reachability."""
        try:
            await self._request("/ping")
            return True
        except PriceSourceError as e:
            logger.error(f"CoinGecko ping failed: {e}")
            return False
