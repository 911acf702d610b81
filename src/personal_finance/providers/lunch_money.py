"""Lunch Money API client and raw record shapes.

Defines the :class:`LunchMoneyAPI` protocol consumed by
:mod:`personal_finance.pipeline`, the raw category/tag/transaction records
exactly as the API returns them, and :class:`LunchMoneyClient`, a thin
``httpx`` implementation.  The client raises :class:`ProviderError` on any
transport, status or decoding failure; retries are left to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

import httpx

from personal_finance.errors import ProviderError
from personal_finance.models import LUNCH_MONEY_BASE_URL, LunchMoneyConfig
from personal_finance.money import Money

logger = logging.getLogger(__name__)

# The API pages at this size; anything beyond it is reported as an error.
TRANSACTION_LIMIT = 10000


# ---------------------------------------------------------------------------
# Raw records
# ---------------------------------------------------------------------------


@dataclass
class RawCategory:
    """A category or category group as returned by ``/v1/categories``."""

    id: int
    name: str
    description: str = ""
    order: int = 0
    is_income: bool = False
    exclude_from_budget: bool = False
    exclude_from_totals: bool = False
    is_archived: bool = False
    archived_on: str = ""
    updated_at: str = ""
    created_at: str = ""
    children: list[RawCategory] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawCategory:
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            description=data.get("description") or "",
            order=int(data.get("order") or 0),
            is_income=bool(data.get("is_income")),
            exclude_from_budget=bool(data.get("exclude_from_budget")),
            exclude_from_totals=bool(data.get("exclude_from_totals")),
            is_archived=bool(data.get("is_archived")),
            archived_on=data.get("archived_on") or "",
            updated_at=data.get("updated_at") or "",
            created_at=data.get("created_at") or "",
            children=[cls.from_dict(c) for c in data.get("children") or []],
        )


@dataclass
class RawTag:
    """A user-defined tag from ``/v1/tags``."""

    id: int
    name: str
    description: str = ""
    is_archived: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawTag:
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            description=data.get("description") or "",
            is_archived=bool(data.get("archived")),
        )


@dataclass
class RawTransaction:
    """A transaction from ``/v1/transactions``.

    ``category_id`` and ``category_group_id`` are ``0`` when absent.
    ``amount`` is the provider's base-currency amount (``to_base``).
    """

    id: int
    date: str
    amount: Money
    payee: str = ""
    original_payee: str = ""
    category_id: int = 0
    category_name: str = ""
    category_group_id: int = 0
    category_group_name: str = ""
    is_income: bool = False
    exclude_from_budget: bool = False
    exclude_from_totals: bool = False
    notes: str = ""
    recurring_cadence: str = ""
    recurring_description: str = ""
    tag_ids: list[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawTransaction:
        return cls(
            id=int(data.get("id") or 0),
            date=data.get("date") or "",
            amount=Money.parse(data.get("to_base", 0)),
            payee=data.get("payee") or "",
            original_payee=data.get("original_name") or "",
            category_id=int(data.get("category_id") or 0),
            category_name=data.get("category_name") or "",
            category_group_id=int(data.get("category_group_id") or 0),
            category_group_name=data.get("category_group_name") or "",
            is_income=bool(data.get("is_income")),
            exclude_from_budget=bool(data.get("exclude_from_budget")),
            exclude_from_totals=bool(data.get("exclude_from_totals")),
            notes=data.get("display_notes") or "",
            recurring_cadence=data.get("recurring_cadence") or "",
            recurring_description=data.get("recurring_description") or "",
            tag_ids=[int(t["id"]) for t in data.get("tags") or []],
        )


def index_categories(categories: Iterable[RawCategory]) -> dict[int, RawCategory]:
    """Flatten a nested category listing into an ID-keyed map.

    Walks the nesting pre-order.  An ID seen a second time is not descended
    into again, which also stops malformed data that nests a category
    beneath itself.
    """
    index: dict[int, RawCategory] = {}
    stack = list(reversed(list(categories)))
    while stack:
        cat = stack.pop()
        if cat.id in index:
            logger.debug("Skipping repeated category id %d (%s)", cat.id, cat.name)
            continue
        index[cat.id] = cat
        stack.extend(reversed(cat.children))
    return index


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class LunchMoneyAPI(Protocol):
    """Read operations the categorization pipeline needs from Lunch Money."""

    def list_categories(self) -> dict[int, RawCategory]: ...

    def list_tags(self) -> dict[int, RawTag]: ...

    def list_transactions(self, start_date: str, end_date: str) -> list[RawTransaction]: ...


class LunchMoneyClient:
    """Lunch Money API client using bearer-token auth over ``httpx``.

    Args:
        token: Lunch Money access token.
        base_url: API root. Default: ``https://dev.lunchmoney.app``.
        timeout: HTTP request timeout in seconds. Default: 30.
    """

    def __init__(
        self,
        token: str,
        base_url: str = LUNCH_MONEY_BASE_URL,
        timeout: float = 30.0,
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: LunchMoneyConfig, token: str) -> LunchMoneyClient:
        return cls(token=token, base_url=config.base_url, timeout=config.timeout)

    def list_categories(self) -> dict[int, RawCategory]:
        """Fetch every category in nested form and index it by ID."""
        body = self._get("/v1/categories", {"format": "nested"})
        try:
            categories = [RawCategory.from_dict(c) for c in body["categories"]]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ProviderError(f"failed to deserialize response: {exc}") from exc
        return index_categories(categories)

    def list_tags(self) -> dict[int, RawTag]:
        """Fetch every tag, keyed by tag ID."""
        body = self._get("/v1/tags", {})
        try:
            tags = [RawTag.from_dict(t) for t in body]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ProviderError(f"failed to deserialize response: {exc}") from exc
        return {tag.id: tag for tag in tags}

    def list_transactions(self, start_date: str, end_date: str) -> list[RawTransaction]:
        """Fetch transactions dated within ``[start_date, end_date]``.

        Args:
            start_date: Inclusive start, ``YYYY-MM-DD``.
            end_date: Inclusive end, ``YYYY-MM-DD``.

        Raises:
            ProviderError: On API failure, or if the range holds more than
                :data:`TRANSACTION_LIMIT` transactions.
        """
        body = self._get(
            "/v1/transactions",
            {"start_date": start_date, "end_date": end_date, "limit": str(TRANSACTION_LIMIT)},
        )
        try:
            has_more = bool(body.get("has_more"))
            raw = body["transactions"]
        except (AttributeError, KeyError, TypeError) as exc:
            raise ProviderError(f"failed to deserialize response: {exc}") from exc
        if has_more:
            raise ProviderError("too many transactions, try smaller time interval")
        try:
            transactions = [RawTransaction.from_dict(t) for t in raw]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ProviderError(f"failed to deserialize response: {exc}") from exc
        logger.info(
            "Fetched %d transactions for %s..%s", len(transactions), start_date, end_date
        )
        return transactions

    def _get(self, path: str, params: dict[str, str]) -> Any:
        headers = {"Authorization": f"Bearer {self.token}"}
        try:
            response = httpx.get(
                self.base_url + path,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ProviderError(
                f"failed to call Lunch Money API: bad status "
                f"{exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"failed to call Lunch Money API: {exc}") from exc

        try:
            return response.json(parse_float=Decimal)
        except ValueError as exc:
            raise ProviderError(f"failed to deserialize response: {exc}") from exc
