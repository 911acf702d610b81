"""Tests for personal_finance.models -- category tree invariants and portfolio totals."""

from __future__ import annotations

import gc
from datetime import date

import pytest

from personal_finance.errors import (
    AlreadyAssigned,
    AlreadyAttached,
    CycleDetected,
    InvalidDate,
    TreeInvariantError,
)
from personal_finance.models import (
    EXPENSES,
    IGNORED,
    INCOME,
    AppConfig,
    AssetPosition,
    Categories,
    Category,
    DateRange,
    DebtPosition,
    Portfolio,
    Transaction,
)
from personal_finance.money import ZERO, Money


def _txn(amount: str, payee: str = "Shop") -> Transaction:
    return Transaction(date=date(2024, 1, 1), payee=payee, amount=Money.parse(amount))


def _subtree_sum(category: Category) -> Money:
    total = ZERO
    for node in category.walk():
        for txn in node.transactions:
            total += txn.amount
    return total


# ---------------------------------------------------------------------------
# AnnotatedObject
# ---------------------------------------------------------------------------


class TestAnnotations:
    """Tests for the annotate() mixin shared by transactions, categories and positions."""

    def test_annotate_sets_and_overwrites(self):
        txn = _txn("1")
        txn.annotate("tag:5", "vacation: trip")
        txn.annotate("tag:5", "vacation: updated")
        assert txn.annotations == {"tag:5": "vacation: updated"}

    def test_annotations_not_shared_between_instances(self):
        a, b = Category("A"), Category("B")
        a.annotate("k", "v")
        assert b.annotations == {}

    def test_positions_are_annotated(self):
        asset = AssetPosition(name="Cash", type="cash", value=Money(1))
        asset.annotate("liquidity", "high")
        assert asset.annotations["liquidity"] == "high"


# ---------------------------------------------------------------------------
# Category.add_transaction
# ---------------------------------------------------------------------------


class TestAddTransaction:
    """Tests for filing transactions and propagating totals."""

    def test_total_propagates_to_every_ancestor(self):
        root = Category(EXPENSES)
        food = root.find_or_create_subcategory("Food")
        groceries = food.find_or_create_subcategory("Groceries")

        groceries.add_transaction(_txn("-10.25"))
        groceries.add_transaction(_txn("-4.75"))

        assert groceries.total_amount == Money.parse("-15")
        assert food.total_amount == Money.parse("-15")
        assert root.total_amount == Money.parse("-15")

    def test_back_reference_is_set(self):
        cat = Category("Food")
        txn = _txn("1")
        cat.add_transaction(txn)
        assert txn.category is cat
        assert txn.is_assigned

    def test_second_assignment_fails_and_leaves_trees_unchanged(self):
        a, b = Category("A"), Category("B")
        txn = _txn("5")
        a.add_transaction(txn)

        with pytest.raises(AlreadyAssigned, match="cannot move transaction to another parent: A -> B"):
            b.add_transaction(txn)

        assert b.transactions == []
        assert b.total_amount == ZERO
        assert a.total_amount == Money.parse("5")
        assert txn.category is a

    def test_reassigning_to_same_category_also_fails(self):
        a = Category("A")
        txn = _txn("5")
        a.add_transaction(txn)
        with pytest.raises(AlreadyAssigned):
            a.add_transaction(txn)
        assert a.total_amount == Money.parse("5")

    def test_zero_amount(self):
        cat = Category("A")
        cat.add_transaction(_txn("0"))
        assert cat.total_amount == ZERO
        assert len(cat.transactions) == 1


# ---------------------------------------------------------------------------
# Category.add_subcategory
# ---------------------------------------------------------------------------


class TestAddSubcategory:
    """Tests for attaching subtrees."""

    def test_attaching_populated_subtree_updates_all_ancestors(self):
        root = Category(EXPENSES)
        mid = root.find_or_create_subcategory("Home")
        mid.add_transaction(_txn("-1"))

        loose = Category("Repairs")
        loose.add_transaction(_txn("-20"))
        loose.find_or_create_subcategory("Plumbing").add_transaction(_txn("-30"))

        mid.add_subcategory(loose)

        assert loose.total_amount == Money.parse("-50")
        assert mid.total_amount == Money.parse("-51")
        assert root.total_amount == Money.parse("-51")
        assert loose.parent is mid

    def test_total_matches_recomputation(self):
        root = Category(EXPENSES)
        a = root.find_or_create_subcategory("A")
        a.add_transaction(_txn("-3.3333"))
        b = Category("B")
        b.add_transaction(_txn("7.0001"))
        a.add_subcategory(b)
        root.find_or_create_subcategory("C").add_transaction(_txn("-0.0001"))

        for node in root.walk():
            assert node.total_amount == _subtree_sum(node)
        snapshot = [node.total_amount for node in root.walk()]
        root.recompute_totals()
        assert [node.total_amount for node in root.walk()] == snapshot

    def test_already_attached_fails_and_leaves_trees_unchanged(self):
        a, b = Category("A"), Category("B")
        sub = Category("Sub")
        sub.add_transaction(_txn("9"))
        a.add_subcategory(sub)

        with pytest.raises(AlreadyAttached, match="cannot move subcategory Sub to another parent: A -> B"):
            b.add_subcategory(sub)

        assert b.subcategories == []
        assert b.total_amount == ZERO
        assert a.subcategories == [sub]
        assert a.total_amount == Money.parse("9")
        assert sub.parent is a

    def test_self_attach_is_cycle(self):
        a = Category("A")
        with pytest.raises(CycleDetected):
            a.add_subcategory(a)
        assert a.subcategories == []

    def test_ancestor_attach_is_cycle(self):
        top = Category("Top")
        middle = top.find_or_create_subcategory("Middle")
        leaf = middle.find_or_create_subcategory("Leaf")

        with pytest.raises(CycleDetected):
            leaf.add_subcategory(top)

        assert leaf.subcategories == []
        assert top.parent is None

    def test_invariant_errors_share_a_base(self):
        a = Category("A")
        with pytest.raises(TreeInvariantError):
            a.add_subcategory(a)

    def test_find_or_create_returns_existing(self):
        root = Category("Root")
        first = root.find_or_create_subcategory("Food")
        again = root.find_or_create_subcategory("Food")
        assert first is again
        assert len(root.subcategories) == 1

    def test_find_or_create_returns_first_match(self):
        root = Category("Root")
        first = Category("Dup")
        second = Category("Dup")
        root.add_subcategory(first)
        root.add_subcategory(second)
        assert root.find_or_create_subcategory("Dup") is first

    def test_ancestors_nearest_first(self):
        root = Category("Root")
        mid = root.find_or_create_subcategory("Mid")
        leaf = mid.find_or_create_subcategory("Leaf")
        assert list(leaf.ancestors()) == [mid, root]

    def test_walk_is_preorder(self):
        root = Category("Root")
        a = root.find_or_create_subcategory("A")
        a.find_or_create_subcategory("A1")
        root.find_or_create_subcategory("B")
        assert [c.name for c in root.walk()] == ["Root", "A", "A1", "B"]


# ---------------------------------------------------------------------------
# Back-references
# ---------------------------------------------------------------------------


class TestBackReferences:
    """Tests for weak parent links and rebuild_tree."""

    def test_parent_does_not_keep_tree_alive(self):
        root = Category("Root")
        child = root.find_or_create_subcategory("Child")
        del root
        gc.collect()
        assert child.parent is None
        # still attached: a released parent does not free the child for reuse
        with pytest.raises(AlreadyAttached, match="<released> -> Other"):
            Category("Other").add_subcategory(child)

    def test_rebuild_tree_restores_links(self):
        txn = _txn("4")
        leaf = Category("Leaf", transactions=[txn], total_amount=Money.parse("4"))
        root = Category("Root", subcategories=[leaf], total_amount=Money.parse("4"))
        assert leaf.parent is None
        assert txn.category is None

        root.rebuild_tree()

        assert leaf.parent is root
        assert txn.category is leaf
        assert root.total_amount == Money.parse("4")

    def test_back_references_excluded_from_repr(self):
        root = Category("Root")
        root.find_or_create_subcategory("Child")
        assert "_parent_ref" not in repr(root)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class TestCategories:
    """Tests for the three root buckets."""

    def test_default_bucket_names(self):
        cats = Categories()
        assert [b.name for b in cats.buckets()] == [INCOME, EXPENSES, IGNORED]

    def test_buckets_are_independent(self):
        cats = Categories()
        cats.income.add_transaction(_txn("100"))
        assert cats.expenses.total_amount == ZERO
        assert cats.ignored.total_amount == ZERO
        assert cats.income.parent is None


# ---------------------------------------------------------------------------
# Portfolio
# ---------------------------------------------------------------------------


class TestPortfolio:
    """Tests for Portfolio aggregation."""

    def test_net_worth(self):
        portfolio = Portfolio()
        portfolio.add_asset(AssetPosition(name="Checking", type="cash", value=Money.parse("100")))
        portfolio.add_debt(DebtPosition(name="Card", type="credit", value=Money.parse("40")))

        assert portfolio.total_assets == Money.parse("100")
        assert portfolio.total_debts == Money.parse("40")
        assert portfolio.net_worth == Money.parse("60")

    def test_totals_match_lists(self):
        portfolio = Portfolio()
        for value in ("1.1111", "2.2222", "-0.5"):
            portfolio.add_asset(AssetPosition(name="a", type="cash", value=Money.parse(value)))
        portfolio.add_debt(DebtPosition(name="d", type="loan", value=Money.parse("3")))

        assets = sum((a.value for a in portfolio.assets), ZERO)
        debts = sum((d.value for d in portfolio.debts), ZERO)
        assert portfolio.total_assets == assets
        assert portfolio.total_debts == debts
        assert portfolio.net_worth == assets - debts

    def test_empty(self):
        portfolio = Portfolio()
        assert portfolio.net_worth == ZERO
        assert portfolio.assets == []


# ---------------------------------------------------------------------------
# DateRange and config defaults
# ---------------------------------------------------------------------------


class TestDateRange:
    """Tests for DateRange.from_strings."""

    def test_valid(self):
        rng = DateRange.from_strings("2024-01-01", "2024-01-31")
        assert rng.start == date(2024, 1, 1)
        assert rng.end_text == "2024-01-31"

    def test_single_day(self):
        rng = DateRange.from_strings("2024-01-01", "2024-01-01")
        assert rng.start == rng.end

    def test_start_after_end(self):
        with pytest.raises(InvalidDate, match="after"):
            DateRange.from_strings("2024-02-01", "2024-01-01")

    def test_missing_date(self):
        with pytest.raises(InvalidDate):
            DateRange.from_strings("", "2024-01-01")

    def test_malformed_date(self):
        with pytest.raises(InvalidDate):
            DateRange.from_strings("2024-01-01", "01/31/2024")


class TestAppConfig:
    def test_defaults(self):
        config = AppConfig()
        assert config.lunch_money.token_env == "LUNCHMONEY_TOKEN"
        assert config.kubera.api_key_env == "KUBERA_API_KEY"
        assert config.kubera.portfolio_id_env == "KUBERA_PORTFOLIO_ID"
        assert config.output_dir == "output"
