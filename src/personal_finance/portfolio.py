"""Leaf-position flattening and net worth assembly.

Kubera lists sections, accounts and holdings side by side, each optionally
naming a parent.  Only leaves (entries no other entry names as parent) are
real holdings; everything else is a grouping whose value would double count.

The flattener makes a single pass keyed by provider ID.  When an entry names
a parent, the parent's slot is overwritten with a tombstone, whether or not
the parent has been seen yet.  An entry whose own slot is already tombstoned
is skipped.  Whatever is not tombstoned after the pass is a leaf, so input
order never changes the result.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from typing import TypeVar

from personal_finance.models import AssetPosition, DebtPosition, Portfolio
from personal_finance.providers.kubera import (
    KuberaAPI,
    RawAssetPosition,
    RawDebtPosition,
    RawPortfolio,
    RawPosition,
)

logger = logging.getLogger(__name__)

_TOMBSTONE = object()

R = TypeVar("R", bound=RawPosition)
P = TypeVar("P")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_portfolio(client: KuberaAPI) -> Portfolio:
    """Fetch the raw portfolio through *client* and reduce it to leaves.

    Raises:
        ProviderError: If the Kubera call fails.
    """
    return build_portfolio(client.get_portfolio())


def build_portfolio(raw: RawPortfolio) -> Portfolio:
    """Fold the leaf assets and debts of *raw* into a fresh :class:`Portfolio`."""
    portfolio = Portfolio()
    for asset in flatten_assets(raw.assets):
        portfolio.add_asset(asset)
    for debt in flatten_debts(raw.debts):
        portfolio.add_debt(debt)
    logger.info(
        "Portfolio %s: %d leaf assets, %d leaf debts, net worth %s",
        raw.id,
        len(portfolio.assets),
        len(portfolio.debts),
        portfolio.net_worth,
    )
    return portfolio


def flatten_assets(raw_assets: Iterable[RawAssetPosition]) -> Iterator[AssetPosition]:
    """Yield a normalized :class:`AssetPosition` for every leaf asset."""
    return _leaves(raw_assets, _build_asset)


def flatten_debts(raw_debts: Iterable[RawDebtPosition]) -> Iterator[DebtPosition]:
    """Yield a normalized :class:`DebtPosition` for every leaf debt."""
    return _leaves(raw_debts, _build_debt)


def determine_asset_type(provider_type: str, provider_subtype: str) -> str:
    """Map a Kubera ``(type, subType)`` pair onto the asset type taxonomy.

    ============  ===========  ===============
    type          subType      result
    ============  ===========  ===============
    bank          any          ``cash``
    investment    any          the subType
    other         home         ``real estate``
    anything else              ``unknown``
    ============  ===========  ===============
    """
    if provider_type == "bank":
        return "cash"
    if provider_type == "investment":
        return provider_subtype
    if provider_type == "other" and provider_subtype == "home":
        return "real estate"
    return "unknown"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _leaves(records: Iterable[R], build: Callable[[R], P]) -> Iterator[P]:
    nodes: dict[str, object] = {}
    for record in records:
        if record.parent is not None:
            nodes[record.parent.id] = _TOMBSTONE

        if nodes.get(record.id) is _TOMBSTONE:
            logger.debug("Skipping non-leaf position %s (%s)", record.id, record.name)
            continue

        nodes[record.id] = build(record)

    for node in nodes.values():
        if node is not _TOMBSTONE:
            yield node


def _build_asset(raw: RawAssetPosition) -> AssetPosition:
    asset = AssetPosition(
        name=raw.name,
        type=determine_asset_type(raw.type, raw.subtype),
        value=raw.value,
        ticker=raw.ticker,
    )
    asset.annotate("liquidity", raw.liquidity)
    asset.annotate("asset_class", raw.asset_class)
    asset.annotate("investable", raw.investable)
    if raw.note:
        asset.annotate("note", raw.note)
    return asset


def _build_debt(raw: RawDebtPosition) -> DebtPosition:
    debt = DebtPosition(name=raw.name, type=raw.type, value=raw.value)
    if raw.note:
        debt.annotate("note", raw.note)
    return debt
