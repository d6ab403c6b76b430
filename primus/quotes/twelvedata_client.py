"""Twelve Data REST API async client.

Fetches OHLCV time series and validates the API key.  A failed call is
terminal for the analysis that made it; there is no retry.
"""

import logging
from typing import Optional

import httpx

from primus.config import Config
from primus.errors import ProviderError
from primus.quotes.models import Bar

logger = logging.getLogger("primus")

_PROVIDER = "twelvedata"
_MAX_OUTPUTSIZE = 5000


class TwelveDataClient:
    """Async client wrapping the Twelve Data REST API."""

    def __init__(self, config: Config, timeout: float = 30.0) -> None:
        self._base_url = config.twelvedata_base_url
        self._api_key = config.twelvedata_api_key
        self._timeout = timeout

    # ── Request helper ───────────────────────────────────────────────────

    async def _get(self, path: str, params: dict) -> dict:
        """Issue one GET and return the decoded JSON body.

        Transport errors, non-2xx responses and ``"status": "error"``
        payloads are raised as ``ProviderError``.
        """
        url = f"{self._base_url}{path}"
        query = {**params, "apikey": self._api_key}

        try:
            async with httpx.AsyncClient() as client:
                resp = await client.get(url, params=query, timeout=self._timeout)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.warning("Twelve Data GET %s returned %d", path, status)
            raise ProviderError(
                _PROVIDER, f"HTTP {status} for {path}", status_code=status,
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Twelve Data GET %s transport error (%s)", path, exc)
            raise ProviderError(_PROVIDER, f"transport error: {exc}") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderError(_PROVIDER, f"non-JSON body for {path}") from exc

        if isinstance(data, dict) and data.get("status") == "error":
            code: Optional[int] = data.get("code")
            raise ProviderError(
                _PROVIDER,
                data.get("message", "unknown error"),
                status_code=code,
            )
        return data

    # ── Time series ──────────────────────────────────────────────────────

    async def get_time_series(
        self,
        symbol: str,
        interval: str,
        outputsize: int = 100,
    ) -> list[Bar]:
        """Fetch OHLCV bars.

        Args:
            symbol: e.g. ``"EUR/USD"`` or ``"XAU/USD"``
            interval: e.g. ``"1day"``, ``"30min"``, ``"5min"``
            outputsize: number of bars to request (max 5000)

        Returns:
            List of ``Bar`` objects ordered oldest-first.
        """
        params = {
            "symbol": symbol,
            "interval": interval,
            "outputsize": min(outputsize, _MAX_OUTPUTSIZE),
            "format": "JSON",
        }
        data = await self._get("/time_series", params)

        values = data.get("values") or []
        if not values:
            raise ProviderError(_PROVIDER, f"no data returned for {symbol} {interval}")

        bars: list[Bar] = []
        try:
            # Twelve Data returns newest-first
            for v in reversed(values):
                bars.append(
                    Bar(
                        time=v["datetime"],
                        open=float(v["open"]),
                        high=float(v["high"]),
                        low=float(v["low"]),
                        close=float(v["close"]),
                        volume=float(v.get("volume") or 0),
                    )
                )
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderError(_PROVIDER, f"malformed bar in response: {exc}") from exc

        logger.info("Fetched %d %s bars for %s", len(bars), interval, symbol)
        return bars

    # ── Account ──────────────────────────────────────────────────────────

    async def validate_api_key(self) -> bool:
        """Return ``True`` if the key is accepted by ``/api_usage``.

        Provider-side rejections return ``False``; transport failures
        still raise ``ProviderError``.
        """
        try:
            await self._get("/api_usage", {})
        except ProviderError as exc:
            if exc.status_code in (401, 403):
                logger.error("Twelve Data rejected the API key: %s", exc)
                return False
            raise
        return True
