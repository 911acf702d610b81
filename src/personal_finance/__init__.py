"""Personal finance snapshots: categorized transactions and net worth."""

__version__ = "0.1.0"
