"""MEXC REST client: spot reference prices and futures position lookup."""

from __future__ import annotations

import asyncio
import json
import math
from datetime import datetime
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from loguru import logger as default_logger

from portx_bot.errors import PriceFetchFailed
from portx_bot.mexc_sign import build_query, signed_headers
from portx_bot.models import LONG, SHORT, LivePosition
from portx_bot.signal_parser import normalize_pair

_RETRYABLE = ("timeout", "timed out", "http 5", "httperror 5", "urlerror")


class MexcClient:
    """Best-effort async wrapper around the MEXC public and contract APIs."""

    def __init__(
        self,
        api_key: str = "",
        api_secret: str = "",
        spot_base_url: str = "https://api.mexc.com",
        futures_base_url: str = "https://contract.mexc.com",
        timeout_sec: float = 10.0,
        max_retries: int = 3,
        logger: Any | None = None,
    ) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.spot_base_url = spot_base_url.rstrip("/")
        self.futures_base_url = futures_base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.max_retries = max(1, max_retries)
        self.logger = logger or default_logger

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret)

    async def get_price(self, pair: str, now: datetime | None = None) -> float:
        symbol = self.spot_symbol(pair)
        try:
            data = await self.safe_request(self.spot_base_url, "/api/v3/ticker/price", {"symbol": symbol})
        except RuntimeError as exc:
            raise PriceFetchFailed(pair, str(exc)) from exc

        raw = data.get("price") if isinstance(data, dict) else None
        if raw is None:
            raise PriceFetchFailed(pair, "price missing in ticker response")
        try:
            price = float(raw)
        except (TypeError, ValueError) as exc:
            raise PriceFetchFailed(pair, f"non-numeric price {raw!r}") from exc
        if not math.isfinite(price) or price < 0:
            raise PriceFetchFailed(pair, f"invalid price {raw!r}")
        return price

    async def get_open_positions(self) -> list[LivePosition]:
        if not self.has_credentials:
            return []

        path = "/api/v1/private/position/open_positions"
        headers = signed_headers(self.api_key, self.api_secret)
        data = await self.safe_request(self.futures_base_url, path, headers=headers)
        rows = data.get("data") if isinstance(data, dict) else []
        if not isinstance(rows, list):
            return []

        result: list[LivePosition] = []
        for row in rows:
            pair = normalize_pair(str(row.get("symbol") or ""))
            volume = float(row.get("holdVol") or row.get("positionVol") or 0)
            if not pair or volume <= 0:
                continue
            pos_type = str(row.get("positionType") or row.get("position_type") or "").lower()
            side_field = str(row.get("positionSide") or row.get("holdSide") or "").lower()
            is_short = pos_type in {"2", "short"} or side_field == "short"
            liq = row.get("liquidatePrice") or row.get("liquidationPrice")
            result.append(
                LivePosition(
                    pair=pair,
                    side=SHORT if is_short else LONG,
                    volume=volume,
                    entry_price=float(row.get("openAvgPrice") or row.get("holdAvgPrice") or 0.0),
                    leverage=int(row.get("leverage") or 1),
                    liquidation_price=float(liq) if liq not in (None, "") else None,
                    unrealized_pnl=float(row.get("unrealizedPnl") or row.get("unrealised") or 0.0),
                )
            )
        return result

    def spot_symbol(self, pair: str) -> str:
        return pair.replace("_", "").upper()

    async def safe_request(
        self,
        base_url: str,
        path: str,
        params: dict[str, object] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        delay = 0.5
        for attempt in range(1, self.max_retries + 1):
            try:
                return await asyncio.to_thread(self._request_sync, base_url, path, params, headers)
            except RuntimeError as exc:
                message = str(exc).lower()
                if not any(k in message for k in _RETRYABLE) or attempt >= self.max_retries:
                    raise
                self.logger.warning("MEXC request retry {}/{} path={} err={}", attempt, self.max_retries, path, exc)
                await asyncio.sleep(delay)
                delay *= 2
        raise RuntimeError("safe_request failed")

    def _request_sync(
        self,
        base_url: str,
        path: str,
        params: dict[str, object] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        url = f"{base_url}{path}"
        if params:
            url = f"{url}?{build_query(params)}"
        req = Request(url=url, method="GET", headers=headers or {})

        try:
            with urlopen(req, timeout=self.timeout_sec) as resp:
                raw = resp.read().decode("utf-8")
        except HTTPError as exc:
            body = exc.read().decode("utf-8", errors="ignore")
            raise RuntimeError(f"HTTPError {exc.code}: {body}") from exc
        except URLError as exc:
            raise RuntimeError(f"URLError: {exc}") from exc
        except TimeoutError as exc:
            raise RuntimeError(f"timeout: {exc}") from exc

        try:
            payload = json.loads(raw or "{}")
        except json.JSONDecodeError as exc:
            raise RuntimeError(f"invalid JSON from {path}") from exc
        if isinstance(payload, dict):
            code = payload.get("code")
            if code not in (0, 200, None):
                raise RuntimeError(f"API error code={code} msg={payload.get('msg') or payload.get('message')}")
            if payload.get("success") is False:
                raise RuntimeError(f"API error msg={payload.get('message')}")
        return payload
