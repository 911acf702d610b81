"""Shared pytest fixtures for personal_finance tests.

Provides reusable fixtures for:
- make_raw_txn / make_asset / make_debt: builders for raw Lunch Money
  transactions and raw Kubera positions, as the clients would return them.
- lunch_money_categories / lunch_money_tags: a small nested category listing
  and tag set.
- fake_lunch_money / fake_kubera (and their make_* factories): in-memory
  clients satisfying the provider protocols, used to exercise the pipeline
  and CLI without HTTP.
- tmp_project_dir: a temporary directory holding a default config.toml.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from personal_finance.config import initialize
from personal_finance.money import Money
from personal_finance.providers.kubera import (
    ParentRef,
    RawAssetPosition,
    RawDebtPosition,
    RawPortfolio,
)
from personal_finance.providers.lunch_money import (
    RawCategory,
    RawTag,
    RawTransaction,
    index_categories,
)

# ---------------------------------------------------------------------------
# Raw record builders
# ---------------------------------------------------------------------------


def _make_raw_txn(
    amount: str,
    payee: str = "Coffee Shop",
    date: str = "2024-01-15",
    category_id: int = 0,
    category_group_id: int = 0,
    is_income: bool = False,
    exclude_from_budget: bool = False,
    exclude_from_totals: bool = False,
    notes: str = "",
    tag_ids: list[int] | None = None,
    txn_id: int = 1,
) -> RawTransaction:
    """Helper to build a RawTransaction with sensible defaults."""
    return RawTransaction(
        id=txn_id,
        date=date,
        amount=Money.parse(amount),
        payee=payee,
        category_id=category_id,
        category_group_id=category_group_id,
        is_income=is_income,
        exclude_from_budget=exclude_from_budget,
        exclude_from_totals=exclude_from_totals,
        notes=notes,
        tag_ids=list(tag_ids or []),
    )


def _make_asset(
    asset_id: str,
    amount: str,
    name: str = "",
    parent: str | None = None,
    type: str = "bank",
    subtype: str = "",
    note: str = "",
    ticker: str = "",
) -> RawAssetPosition:
    """Helper to build a RawAssetPosition, optionally under *parent*."""
    return RawAssetPosition(
        id=asset_id,
        name=name or asset_id,
        value=Money.parse(amount),
        type=type,
        subtype=subtype,
        note=note,
        ticker=ticker,
        parent=ParentRef(id=parent) if parent else None,
        investable="investable_cash",
        liquidity="high",
        asset_class="cash",
    )


def _make_debt(
    debt_id: str, amount: str, name: str = "", parent: str | None = None, type: str = "loan"
) -> RawDebtPosition:
    return RawDebtPosition(
        id=debt_id,
        name=name or debt_id,
        value=Money.parse(amount),
        type=type,
        parent=ParentRef(id=parent) if parent else None,
    )


# ---------------------------------------------------------------------------
# Fake provider clients
# ---------------------------------------------------------------------------


class FakeLunchMoney:
    """In-memory LunchMoneyAPI that records the requested date range."""

    def __init__(
        self,
        transactions: list[RawTransaction] | None = None,
        categories: list[RawCategory] | None = None,
        tags: list[RawTag] | None = None,
    ) -> None:
        self.transactions = list(transactions or [])
        self.categories = index_categories(categories or [])
        self.tags = {tag.id: tag for tag in tags or []}
        self.requested: tuple[str, str] | None = None

    def list_categories(self) -> dict[int, RawCategory]:
        return dict(self.categories)

    def list_tags(self) -> dict[int, RawTag]:
        return dict(self.tags)

    def list_transactions(self, start_date: str, end_date: str) -> list[RawTransaction]:
        self.requested = (start_date, end_date)
        return list(self.transactions)


class FakeKubera:
    """In-memory KuberaAPI returning a fixed portfolio."""

    def __init__(self, portfolio: RawPortfolio) -> None:
        self.portfolio = portfolio

    def get_portfolio(self) -> RawPortfolio:
        return self.portfolio


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_raw_txn():
    """Builder for RawTransaction records; only the amount is required."""
    return _make_raw_txn


@pytest.fixture
def make_asset():
    """Builder for RawAssetPosition records, optionally under a parent ID."""
    return _make_asset


@pytest.fixture
def make_debt():
    return _make_debt


@pytest.fixture
def make_fake_lunch_money():
    """Factory for FakeLunchMoney clients over arbitrary raw records."""
    return FakeLunchMoney


@pytest.fixture
def make_fake_kubera():
    return FakeKubera


@pytest.fixture
def lunch_money_categories() -> list[RawCategory]:
    """A nested category listing: a Food group with two children plus a loose category.

    IDs:
    - 10 Food (group) -> 11 Groceries, 12 Restaurants
    - 20 Salary (income, no group)
    - 30 Transfers (excluded from totals)
    """
    return [
        RawCategory(
            id=10,
            name="Food",
            description="Food and drink",
            children=[
                RawCategory(id=11, name="Groceries", description="Supermarkets"),
                RawCategory(id=12, name="Restaurants", description="Eating out"),
            ],
        ),
        RawCategory(id=20, name="Salary", is_income=True),
        RawCategory(id=30, name="Transfers", exclude_from_totals=True),
    ]


@pytest.fixture
def lunch_money_tags() -> list[RawTag]:
    return [
        RawTag(id=5, name="vacation", description="Summer trip"),
        RawTag(id=6, name="old", description="Retired tag", is_archived=True),
    ]


@pytest.fixture
def fake_lunch_money(lunch_money_categories, lunch_money_tags) -> FakeLunchMoney:
    """A FakeLunchMoney holding one transaction per bucket."""
    return FakeLunchMoney(
        transactions=[
            _make_raw_txn(
                "-42.50",
                payee="Market",
                category_id=11,
                category_group_id=10,
                tag_ids=[5],
                txn_id=1,
            ),
            _make_raw_txn("3000", payee="Employer", category_id=20, is_income=True, txn_id=2),
            _make_raw_txn(
                "-500", payee="Savings", category_id=30, exclude_from_totals=True, txn_id=3
            ),
        ],
        categories=lunch_money_categories,
        tags=lunch_money_tags,
    )


@pytest.fixture
def fake_kubera() -> FakeKubera:
    """A FakeKubera with one section, two leaf assets and one debt."""
    return FakeKubera(
        RawPortfolio(
            id="p-1",
            name="Household",
            assets=[
                _make_asset("section", "150", name="Bank Accounts"),
                _make_asset("checking", "100", name="Checking", parent="section"),
                _make_asset(
                    "brokerage",
                    "50",
                    name="Brokerage",
                    type="investment",
                    subtype="stock",
                    ticker="VTI",
                ),
            ],
            debts=[_make_debt("mortgage", "90", name="Mortgage")],
        )
    )


@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """A temporary project root holding a default config.toml."""
    project = tmp_path / "finance-project"
    initialize(project)
    return project
