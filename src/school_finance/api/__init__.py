"""HTTP API for the school finance ledger."""
