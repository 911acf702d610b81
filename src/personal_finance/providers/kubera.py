"""Kubera API client and raw position shapes.

Kubera reports holdings as a flat list where sections and accounts point at
their parent through a ``parent`` reference.  The raw records here keep that
shape; :mod:`personal_finance.portfolio` reduces them to leaf positions.

Every request is signed: ``HMAC-SHA256(secret, api_key + timestamp + method +
request_uri)`` hex-encoded into the ``x-signature`` header.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

import httpx

from personal_finance.errors import ProviderError
from personal_finance.models import KUBERA_BASE_URL, KuberaConfig
from personal_finance.money import ZERO, Money

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Raw records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParentRef:
    id: str
    name: str = ""


@dataclass(frozen=True)
class Geography:
    country: str = ""
    region: str = ""


@dataclass
class RawPosition:
    """Fields common to Kubera assets and debts.

    Attributes:
        id: Opaque Kubera identifier.  Not carried into the domain model.
        value: Amount in the portfolio's base currency.
        parent: The section or account this entry belongs to, if any.
    """

    id: str
    name: str = ""
    description: str = ""
    note: str = ""
    value: Money = ZERO
    currency: str = ""
    ticker: str = ""
    type: str = ""
    subtype: str = ""
    parent: ParentRef | None = None

    @staticmethod
    def _common(data: dict[str, Any]) -> dict[str, Any]:
        value = data.get("value") or {}
        parent = data.get("parent")
        return dict(
            id=str(data["id"]),
            name=data.get("name") or "",
            description=data.get("description") or "",
            note=data.get("note") or "",
            value=Money.parse(value.get("amount", 0)),
            currency=value.get("currency") or "",
            ticker=data.get("ticker") or "",
            type=data.get("type") or "",
            subtype=data.get("subType") or "",
            parent=ParentRef(id=str(parent["id"]), name=parent.get("name") or "")
            if parent
            else None,
        )


@dataclass
class RawAssetPosition(RawPosition):
    investable: str = ""
    liquidity: str = ""
    asset_class: str = ""
    geography: Geography | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawAssetPosition:
        geo = data.get("geography")
        return cls(
            **cls._common(data),
            investable=str(data.get("investable") or ""),
            liquidity=str(data.get("liquidity") or ""),
            asset_class=str(data.get("assetClass") or ""),
            geography=Geography(
                country=geo.get("country") or "", region=geo.get("region") or ""
            )
            if geo
            else None,
        )


@dataclass
class RawDebtPosition(RawPosition):
    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawDebtPosition:
        return cls(**cls._common(data))


@dataclass
class RawPortfolio:
    id: str
    name: str = ""
    assets: list[RawAssetPosition] = field(default_factory=list)
    debts: list[RawDebtPosition] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawPortfolio:
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            assets=[RawAssetPosition.from_dict(a) for a in data.get("asset") or []],
            debts=[RawDebtPosition.from_dict(d) for d in data.get("debt") or []],
        )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class KuberaAPI(Protocol):
    """Read operations the portfolio builder needs from Kubera."""

    def get_portfolio(self) -> RawPortfolio: ...


def sign_request(
    api_key: str, api_secret: str, timestamp: str, method: str, request_uri: str
) -> str:
    """Return the hex HMAC-SHA256 signature Kubera expects for a request."""
    message = f"{api_key}{timestamp}{method}{request_uri}"
    return hmac.new(api_secret.encode(), message.encode(), hashlib.sha256).hexdigest()


class KuberaClient:
    """Kubera API client bound to one portfolio.

    Args:
        api_key: Kubera API key, sent as ``x-api-token``.
        api_secret: Secret used to sign each request.
        portfolio_id: Portfolio to read.
        base_url: API root. Default: ``https://api.kubera.com/api``.
        timeout: HTTP request timeout in seconds. Default: 30.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        portfolio_id: str,
        base_url: str = KUBERA_BASE_URL,
        timeout: float = 30.0,
    ) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.portfolio_id = portfolio_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(
        cls, config: KuberaConfig, api_key: str, api_secret: str, portfolio_id: str
    ) -> KuberaClient:
        return cls(
            api_key=api_key,
            api_secret=api_secret,
            portfolio_id=portfolio_id,
            base_url=config.base_url,
            timeout=config.timeout,
        )

    def get_portfolio(self) -> RawPortfolio:
        """Fetch the configured portfolio.

        Raises:
            ProviderError: On transport failure, bad status, undecodable body
                or a non-zero ``errorCode``.
        """
        body = self._get(f"/v3/data/portfolio/{self.portfolio_id}")
        try:
            error_code = int(body.get("errorCode") or 0)
            data = body.get("data")
        except (AttributeError, TypeError, ValueError) as exc:
            raise ProviderError(f"failed to deserialize response: {exc}") from exc
        if error_code > 0:
            raise ProviderError(f"Kubera API error: {error_code}")
        if data is None:
            raise ProviderError("failed to deserialize response: missing data")
        try:
            portfolio = RawPortfolio.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ProviderError(f"failed to deserialize response: {exc}") from exc
        logger.info(
            "Fetched portfolio %s: %d assets, %d debts",
            portfolio.id,
            len(portfolio.assets),
            len(portfolio.debts),
        )
        return portfolio

    def _get(self, path: str) -> Any:
        url = httpx.URL(self.base_url + path)
        timestamp = str(int(time.time()))
        signature = sign_request(
            self.api_key, self.api_secret, timestamp, "GET", url.raw_path.decode()
        )
        headers = {
            "Content-Type": "application/json",
            "x-api-token": self.api_key,
            "x-timestamp": timestamp,
            "x-signature": signature,
        }
        try:
            response = httpx.get(url, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ProviderError(
                f"failed to call Kubera API: bad status "
                f"{exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"failed to call Kubera API: {exc}") from exc

        try:
            return response.json(parse_float=Decimal)
        except ValueError as exc:
            raise ProviderError(f"failed to deserialize response: {exc}") from exc
