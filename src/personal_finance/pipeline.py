"""Transaction categorization pipeline.

Turns raw Lunch Money transactions into a :class:`~personal_finance.models.Categories`
tree.  For each transaction, in input order:

1. **Build** -- parse the date, copy payee, amount and notes.
2. **Tag** -- annotate ``tag:<id>`` with ``"<name>: <description>"`` for every
   known, non-archived tag.
3. **Bucket** -- Income if ``is_income``; Ignored if excluded from budget or
   totals; otherwise Expenses.
4. **Group** -- descend into the category group, unless the group shares the
   bucket's name.
5. **File** -- add the transaction to its leaf category.

Reference misses (unknown tag, category or group) are non-fatal: they are
logged and, for categories, the transaction is filed under ``Uncategorized``
with a ``category_error`` annotation.  Malformed dates and tree invariant
violations abort the whole run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from personal_finance.errors import LookupMiss
from personal_finance.models import (
    UNCATEGORIZED,
    Categories,
    Category,
    DateRange,
    Transaction,
)
from personal_finance.money import parse_date
from personal_finance.providers.lunch_money import (
    LunchMoneyAPI,
    RawCategory,
    RawTag,
    RawTransaction,
)

logger = logging.getLogger(__name__)

CATEGORY_ERROR = "category_error"
INVALID_GROUP_MESSAGE = "uncategorized due to invalid category group id"
INVALID_CATEGORY_MESSAGE = "uncategorized due to invalid category id"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_categorized_transactions(client: LunchMoneyAPI, date_range: DateRange) -> Categories:
    """Fetch reference data and transactions through *client* and categorize them.

    Args:
        client: Lunch Money client (real or test double).
        date_range: Inclusive interval of transactions to fetch.

    Returns:
        A freshly built :class:`Categories` tree.

    Raises:
        ProviderError: If any Lunch Money call fails.
        InvalidDate: If a transaction carries a malformed date.
    """
    categories = client.list_categories()
    tags = client.list_tags()
    transactions = client.list_transactions(date_range.start_text, date_range.end_text)
    return categorize(transactions, categories, tags)


def get_categorized_summaries(client: LunchMoneyAPI, date_range: DateRange) -> Categories:
    """Like :func:`get_categorized_transactions` but with transaction lists removed.

    Totals are kept, so the result is a spending summary by category.
    """
    result = get_categorized_transactions(client, date_range)
    for bucket in result.buckets():
        strip_transactions(bucket)
    return result


def categorize(
    transactions: Iterable[RawTransaction],
    categories: Mapping[int, RawCategory],
    tags: Mapping[int, RawTag],
) -> Categories:
    """Bucket *transactions* into Income / Expenses / Ignored trees.

    Args:
        transactions: Raw transactions, processed in order.
        categories: Every category and category group, keyed by ID.
        tags: Every tag, keyed by ID.

    Returns:
        The populated :class:`Categories`.

    Raises:
        InvalidDate: If any transaction date is malformed.
        TreeInvariantError: If a tree mutation rule is broken.
    """
    result = Categories()
    misses = 0

    for raw in transactions:
        txn = build_transaction(raw)

        for tag_id in raw.tag_ids:
            try:
                tag = _lookup(tags, tag_id, "tag")
            except LookupMiss as exc:
                logger.warning("%s", exc)
                continue
            add_transaction_tag(txn, tag)

        bucket = select_bucket(result, raw)

        if raw.category_id == 0:
            _file_uncategorized(bucket, txn)
            continue

        if raw.category_group_id != 0:
            try:
                group = _lookup(categories, raw.category_group_id, "category group")
            except LookupMiss as exc:
                logger.warning("%s", exc)
                txn.annotate(CATEGORY_ERROR, INVALID_GROUP_MESSAGE)
                _file_uncategorized(bucket, txn)
                misses += 1
                continue
            if group.name != bucket.name:
                bucket = find_or_create_category(bucket, group)

        try:
            raw_category = _lookup(categories, raw.category_id, "category")
        except LookupMiss as exc:
            logger.warning("%s", exc)
            txn.annotate(CATEGORY_ERROR, INVALID_CATEGORY_MESSAGE)
            _file_uncategorized(bucket, txn)
            misses += 1
            continue

        find_or_create_category(bucket, raw_category).add_transaction(txn)

    if misses:
        logger.info("%d transaction(s) uncategorized due to missing references", misses)
    return result


def build_transaction(raw: RawTransaction) -> Transaction:
    """Convert a raw transaction into a domain :class:`Transaction`.

    Raises:
        InvalidDate: If ``raw.date`` is malformed.
    """
    return Transaction(
        date=parse_date(raw.date),
        payee=raw.payee,
        amount=raw.amount,
        description=raw.notes,
    )


def add_transaction_tag(txn: Transaction, tag: RawTag) -> None:
    """Annotate *txn* with *tag*, skipping archived tags."""
    if tag.is_archived:
        logger.info("Skipping archived tag: %d - %s", tag.id, tag.name)
        return
    txn.annotate(f"tag:{tag.id}", f"{tag.name}: {tag.description}")


def select_bucket(result: Categories, raw: RawTransaction) -> Category:
    if raw.is_income:
        return result.income
    if raw.exclude_from_budget or raw.exclude_from_totals:
        return result.ignored
    return result.expenses


def find_or_create_category(parent: Category, raw: RawCategory) -> Category:
    """Locate or create the child of *parent* named after *raw*.

    The provider description is copied onto the node every time, so when
    two provider categories share a name the last one processed wins.
    """
    category = parent.find_or_create_subcategory(raw.name)
    category.description = raw.description
    return category


def strip_transactions(category: Category) -> None:
    """Drop transaction lists from every node below *category*, keeping totals."""
    for node in category.walk():
        node.transactions = []


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _lookup(mapping, ref_id: int, kind: str):
    try:
        return mapping[ref_id]
    except KeyError:
        raise LookupMiss(kind, ref_id) from None


def _file_uncategorized(bucket: Category, txn: Transaction) -> None:
    bucket.find_or_create_subcategory(UNCATEGORIZED).add_transaction(txn)
