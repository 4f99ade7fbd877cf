"""Extract Stellar ledger operations into flat, analytics-ready records."""
