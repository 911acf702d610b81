"""Core data models for personal_finance.

This module defines the domain dataclasses: annotated transactions, the
category tree and its three root buckets, asset/debt positions and the
portfolio aggregate, plus the configuration dataclasses loaded by
:mod:`personal_finance.config`.  It depends only on ``money`` and ``errors``.

Back-references (category -> parent, transaction -> category) are weak
references into the owning tree.  They never keep a node alive and are left
out of equality, ``repr`` and the serialized form.
"""

from __future__ import annotations

import weakref
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date

from personal_finance.errors import (
    AlreadyAssigned,
    AlreadyAttached,
    CycleDetected,
    InvalidDate,
)
from personal_finance.money import ZERO, Money, format_date, parse_date

INCOME = "Income"
EXPENSES = "Expenses"
IGNORED = "Ignored"
UNCATEGORIZED = "Uncategorized"

LUNCH_MONEY_BASE_URL = "https://dev.lunchmoney.app"
KUBERA_BASE_URL = "https://api.kubera.com/api"


# ---------------------------------------------------------------------------
# Annotations
# ---------------------------------------------------------------------------


@dataclass
class AnnotatedObject:
    """Mixin carrying system-generated ``key -> text`` metadata.

    Attributes:
        annotations: Free-form annotations such as ``"tag:5"`` or
            ``"category_error"``.  Keyword-only so subclasses can declare
            positional fields.
    """

    annotations: dict[str, str] = field(default_factory=dict, kw_only=True)

    def annotate(self, key: str, value: str) -> None:
        self.annotations[key] = value


# ---------------------------------------------------------------------------
# Transactions and the category tree
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class Transaction(AnnotatedObject):
    """A single categorized financial entry.

    Immutable apart from annotations and the one-time category assignment
    made by :meth:`Category.add_transaction`.

    Attributes:
        date: Date the transaction occurred, or ``None`` for the zero date.
        payee: Counterparty of the transaction.
        amount: Amount in the base currency.
        description: User notes copied from the provider.
    """

    date: date | None
    payee: str
    amount: Money
    description: str = ""
    _category_ref: weakref.ref | None = field(
        default=None, init=False, repr=False, compare=False
    )

    @property
    def category(self) -> Category | None:
        """The category this transaction is filed under, if still alive."""
        if self._category_ref is None:
            return None
        return self._category_ref()

    @property
    def is_assigned(self) -> bool:
        return self._category_ref is not None


@dataclass(eq=False)
class Category(AnnotatedObject):
    """A named bucket of transactions and nested subcategories.

    ``total_amount`` always equals the sum of every transaction in the
    subtree rooted here.  A category can be attached to exactly one parent
    for its lifetime, and a transaction to exactly one category.

    Attributes:
        name: Display name, unique among siblings.
        description: Optional description copied from the provider.
        total_amount: Sum of all transactions in this subtree.
        subcategories: Child categories in insertion order.
        transactions: Transactions filed directly under this category.
    """

    name: str
    description: str = ""
    total_amount: Money = ZERO
    subcategories: list[Category] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)
    _parent_ref: weakref.ref | None = field(
        default=None, init=False, repr=False, compare=False
    )

    @property
    def parent(self) -> Category | None:
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    @property
    def is_attached(self) -> bool:
        return self._parent_ref is not None

    def ancestors(self) -> Iterator[Category]:
        """Yield the parent chain, nearest first."""
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def walk(self) -> Iterator[Category]:
        """Yield this category and every descendant, pre-order."""
        yield self
        for sub in self.subcategories:
            yield from sub.walk()

    def add_subcategory(self, sub: Category) -> None:
        """Attach *sub* beneath this category and refresh totals.

        The subtree rooted here is recomputed from scratch and the change is
        pushed up through every ancestor.

        Raises:
            AlreadyAttached: If *sub* already has a parent.
            CycleDetected: If *sub* is this category or one of its ancestors.
        """
        if sub.is_attached:
            current = sub.parent
            current_name = current.name if current is not None else "<released>"
            raise AlreadyAttached(
                f"cannot move subcategory {sub.name} to another parent: "
                f"{current_name} -> {self.name}"
            )
        if sub is self or any(node is sub for node in self.ancestors()):
            raise CycleDetected(
                f"cannot attach category {sub.name} beneath its own descendant {self.name}"
            )

        self.subcategories.append(sub)
        sub._parent_ref = weakref.ref(self)

        before = self.total_amount
        self.recompute_totals()
        delta = self.total_amount - before
        if delta and self.parent is not None:
            self.parent._add_to_total(delta)

    def add_transaction(self, txn: Transaction) -> None:
        """File *txn* under this category and add its amount up the chain.

        Raises:
            AlreadyAssigned: If *txn* is already filed somewhere.
        """
        if txn.is_assigned:
            current = txn.category
            current_name = current.name if current is not None else "<released>"
            raise AlreadyAssigned(
                f"cannot move transaction to another parent: {current_name} -> {self.name}"
            )
        self.transactions.append(txn)
        txn._category_ref = weakref.ref(self)
        self._add_to_total(txn.amount)

    def find_or_create_subcategory(self, name: str) -> Category:
        """Return the first direct child named *name*, creating it if absent."""
        for sub in self.subcategories:
            if sub.name == name:
                return sub
        created = Category(name)
        self.add_subcategory(created)
        return created

    def recompute_totals(self) -> Money:
        """Recalculate ``total_amount`` for every node in this subtree.

        Returns:
            The recomputed total of this node.
        """
        total = ZERO
        for sub in self.subcategories:
            total += sub.recompute_totals()
        for txn in self.transactions:
            total += txn.amount
        self.total_amount = total
        return total

    def rebuild_tree(self) -> None:
        """Restore parent and category back-references below this node.

        Used after loading a serialized tree.  Totals are left as loaded.
        """
        for sub in self.subcategories:
            sub._parent_ref = weakref.ref(self)
            sub.rebuild_tree()
        for txn in self.transactions:
            txn._category_ref = weakref.ref(self)

    def _add_to_total(self, amount: Money) -> None:
        node: Category | None = self
        while node is not None:
            node.total_amount += amount
            node = node.parent


@dataclass(eq=False)
class Categories:
    """The three independent root buckets of a categorization run."""

    income: Category = field(default_factory=lambda: Category(INCOME))
    expenses: Category = field(default_factory=lambda: Category(EXPENSES))
    ignored: Category = field(default_factory=lambda: Category(IGNORED))

    def buckets(self) -> tuple[Category, Category, Category]:
        return (self.income, self.expenses, self.ignored)

    def rebuild_tree(self) -> None:
        for bucket in self.buckets():
            bucket.rebuild_tree()


# ---------------------------------------------------------------------------
# Positions and portfolio
# ---------------------------------------------------------------------------


@dataclass
class Position(AnnotatedObject):
    """A leaf asset or debt holding.

    Attributes:
        name: Display name of the holding.
        type: Normalized type, e.g. ``"cash"`` or ``"real estate"``.
        value: Current value in the base currency.
    """

    name: str
    type: str
    value: Money


@dataclass
class AssetPosition(Position):
    ticker: str = ""


@dataclass
class DebtPosition(Position):
    pass


@dataclass
class Portfolio:
    """Net worth snapshot built from leaf positions.

    Only :meth:`add_asset` and :meth:`add_debt` mutate it; each keeps the
    three totals in step with the lists.
    """

    net_worth: Money = ZERO
    total_assets: Money = ZERO
    total_debts: Money = ZERO
    assets: list[AssetPosition] = field(default_factory=list)
    debts: list[DebtPosition] = field(default_factory=list)

    def add_asset(self, asset: AssetPosition) -> None:
        self.assets.append(asset)
        self.total_assets += asset.value
        self.net_worth += asset.value

    def add_debt(self, debt: DebtPosition) -> None:
        self.debts.append(debt)
        self.total_debts += debt.value
        self.net_worth -= debt.value


# ---------------------------------------------------------------------------
# Queries and configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DateRange:
    """Inclusive date interval for transaction queries."""

    start: date
    end: date

    @classmethod
    def from_strings(cls, start: str, end: str) -> DateRange:
        """Build a range from two ``YYYY-MM-DD`` strings.

        Raises:
            InvalidDate: If either date is malformed or missing, or if
                *start* falls after *end*.
        """
        start_date = parse_date(start)
        end_date = parse_date(end)
        if start_date is None or end_date is None:
            raise InvalidDate("start and end dates are required")
        if start_date > end_date:
            raise InvalidDate(f"start date {start} is after end date {end}")
        return cls(start=start_date, end=end_date)

    @property
    def start_text(self) -> str:
        return format_date(self.start)

    @property
    def end_text(self) -> str:
        return format_date(self.end)


@dataclass
class LunchMoneyConfig:
    """Connection settings for the Lunch Money API.

    Attributes:
        base_url: API root.
        token_env: Name of the environment variable holding the API token.
        timeout: HTTP timeout in seconds.
    """

    base_url: str = LUNCH_MONEY_BASE_URL
    token_env: str = "LUNCHMONEY_TOKEN"
    timeout: float = 30.0


@dataclass
class KuberaConfig:
    """Connection settings for the Kubera API.

    Attributes:
        base_url: API root.
        api_key_env: Environment variable holding the API key.
        api_secret_env: Environment variable holding the signing secret.
        portfolio_id_env: Environment variable holding the portfolio ID.
        timeout: HTTP timeout in seconds.
    """

    base_url: str = KUBERA_BASE_URL
    api_key_env: str = "KUBERA_API_KEY"
    api_secret_env: str = "KUBERA_API_SECRET"
    portfolio_id_env: str = "KUBERA_PORTFOLIO_ID"
    timeout: float = 30.0


@dataclass
class AppConfig:
    """Top-level application configuration loaded from config.toml."""

    output_dir: str = "output"
    lunch_money: LunchMoneyConfig = field(default_factory=LunchMoneyConfig)
    kubera: KuberaConfig = field(default_factory=KuberaConfig)
