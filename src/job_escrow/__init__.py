"""Job Escrow Ledger — job posting, escrow, disputes and reputation."""

__version__ = "0.1.0"
