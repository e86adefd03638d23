"""Configuration loading for the PrivaMed ledger."""
