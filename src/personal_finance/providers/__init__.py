"""Thin HTTP clients for the two upstream data providers.

- :mod:`~personal_finance.providers.lunch_money` -- transactions, categories
  and tags from Lunch Money.
- :mod:`~personal_finance.providers.kubera` -- asset and debt positions from
  Kubera.

Each module exposes a ``Protocol`` describing the reads the core needs, so
callers can inject the real client or a test double.
"""

from __future__ import annotations

from personal_finance.providers.kubera import KuberaAPI, KuberaClient
from personal_finance.providers.lunch_money import LunchMoneyAPI, LunchMoneyClient

__all__ = [
    "KuberaAPI",
    "KuberaClient",
    "LunchMoneyAPI",
    "LunchMoneyClient",
]
