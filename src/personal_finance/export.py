"""JSON snapshots and human-readable summaries.

- :func:`categories_to_dict` / :func:`portfolio_to_dict` render the domain
  trees in their wire form: money as 4-decimal strings, empty annotations
  omitted, back-references never written.  Amounts are quoted strings, not
  bare JSON numbers; consumers expecting numbers must convert.
- :func:`categories_from_dict` / :func:`load_categories` read a snapshot back
  and restore parent and category back-references.  Amounts may be quoted
  strings or bare numbers, so snapshots written by number-emitting tools load
  too.
- :func:`write_snapshot` writes a snapshot file; :func:`print_summary` and
  :func:`print_net_worth` print a breakdown to stdout.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from personal_finance.models import (
    EXPENSES,
    IGNORED,
    INCOME,
    AssetPosition,
    Categories,
    Category,
    Portfolio,
    Position,
    Transaction,
)
from personal_finance.money import Money, format_date, format_money, parse_date


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def transaction_to_dict(txn: Transaction) -> dict[str, Any]:
    data: dict[str, Any] = {
        "date": format_date(txn.date),
        "payee": txn.payee,
        "amount": format_money(txn.amount),
    }
    if txn.description:
        data["description"] = txn.description
    if txn.annotations:
        data["annotations"] = dict(txn.annotations)
    return data


def category_to_dict(category: Category) -> dict[str, Any]:
    """Render *category* and its subtree.

    ``subcategories`` and ``transactions`` are omitted when empty, as are
    ``description`` and ``annotations``.
    """
    data: dict[str, Any] = {"name": category.name}
    if category.description:
        data["description"] = category.description
    if category.annotations:
        data["annotations"] = dict(category.annotations)
    data["total_amount"] = format_money(category.total_amount)
    if category.subcategories:
        data["subcategories"] = [category_to_dict(sub) for sub in category.subcategories]
    if category.transactions:
        data["transactions"] = [transaction_to_dict(txn) for txn in category.transactions]
    return data


def categories_to_dict(categories: Categories) -> dict[str, Any]:
    return {
        "income": category_to_dict(categories.income),
        "expenses": category_to_dict(categories.expenses),
        "ignored": category_to_dict(categories.ignored),
    }


def position_to_dict(position: Position) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": position.name,
        "type": position.type,
        "value": format_money(position.value),
    }
    if isinstance(position, AssetPosition):
        data["ticker"] = position.ticker
    if position.annotations:
        data["annotations"] = dict(position.annotations)
    return data


def portfolio_to_dict(portfolio: Portfolio) -> dict[str, Any]:
    return {
        "net_worth": format_money(portfolio.net_worth),
        "total_assets": format_money(portfolio.total_assets),
        "total_debts": format_money(portfolio.total_debts),
        "assets": [position_to_dict(a) for a in portfolio.assets],
        "debts": [position_to_dict(d) for d in portfolio.debts],
    }


def dumps(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Deserialization
# ---------------------------------------------------------------------------


def transaction_from_dict(data: dict[str, Any]) -> Transaction:
    return Transaction(
        date=parse_date(data.get("date") or ""),
        payee=data.get("payee") or "",
        amount=Money.parse(data.get("amount", 0)),
        description=data.get("description") or "",
        annotations=dict(data.get("annotations") or {}),
    )


def category_from_dict(data: dict[str, Any], default_name: str = "") -> Category:
    """Build a detached category subtree from its wire form.

    Totals are taken as written: summary snapshots have totals but no
    transactions.  Call :meth:`Category.rebuild_tree` to restore links.
    """
    return Category(
        name=data.get("name") or default_name,
        description=data.get("description") or "",
        total_amount=Money.parse(data.get("total_amount", 0)),
        subcategories=[category_from_dict(s) for s in data.get("subcategories") or []],
        transactions=[transaction_from_dict(t) for t in data.get("transactions") or []],
        annotations=dict(data.get("annotations") or {}),
    )


def categories_from_dict(data: dict[str, Any]) -> Categories:
    """Load a :class:`Categories` snapshot and restore every back-reference."""
    categories = Categories(
        income=category_from_dict(data.get("income") or {}, INCOME),
        expenses=category_from_dict(data.get("expenses") or {}, EXPENSES),
        ignored=category_from_dict(data.get("ignored") or {}, IGNORED),
    )
    categories.rebuild_tree()
    return categories


def load_categories(path: str | Path) -> Categories:
    """Read a categories snapshot written by :func:`write_snapshot`.

    Raises:
        FileNotFoundError: If *path* does not exist.
        json.JSONDecodeError: If the file is not JSON.
    """
    with open(path, encoding="utf-8") as f:
        return categories_from_dict(json.load(f))


# ---------------------------------------------------------------------------
# Files and summaries
# ---------------------------------------------------------------------------


def write_snapshot(data: dict[str, Any], output_path: str | Path) -> Path:
    """Write *data* as indented JSON to *output_path*, creating parent dirs."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(dumps(data) + "\n", encoding="utf-8")
    return output_path


def print_summary(categories: Categories, title: str = "") -> None:
    """Print each bucket as an indented tree of category totals.

    Transactions carrying a ``category_error`` annotation are counted at the
    end so the reader can see how many fell back to ``Uncategorized``.
    """
    print()
    print(f"== Category Summary{': ' + title if title else ''} ==")

    errors = 0
    for bucket in categories.buckets():
        print()
        print(f"{bucket.name + ':':<32} {format_money(bucket.total_amount):>16}")
        _print_subtree(bucket, depth=1)
        for node in bucket.walk():
            errors += sum(1 for t in node.transactions if "category_error" in t.annotations)

    if errors:
        print()
        print(f"Categorization errors: {errors} transaction(s) filed as Uncategorized")
    print()


def print_net_worth(portfolio: Portfolio) -> None:
    """Print portfolio totals followed by assets and debts by value."""
    print()
    print("== Net Worth Summary ==")
    print(f"Net worth:    {format_money(portfolio.net_worth):>16}")
    print(f"Total assets: {format_money(portfolio.total_assets):>16}")
    print(f"Total debts:  {format_money(portfolio.total_debts):>16}")

    for label, positions in (("Assets", portfolio.assets), ("Debts", portfolio.debts)):
        if not positions:
            continue
        print()
        print(f"{label}:")
        for pos in sorted(positions, key=lambda p: p.value, reverse=True):
            print(f"  {pos.name:<30} {pos.type:<14} {format_money(pos.value):>16}")
    print()


def _print_subtree(category: Category, depth: int) -> None:
    for sub in sorted(category.subcategories, key=lambda c: abs(c.total_amount.units), reverse=True):
        label = "  " * depth + sub.name
        count = sum(len(node.transactions) for node in sub.walk())
        suffix = f"  ({count} txns)" if count else ""
        print(f"{label + ':':<32} {format_money(sub.total_amount):>16}{suffix}")
        _print_subtree(sub, depth + 1)

