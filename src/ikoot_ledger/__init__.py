"""IKOOT loyalty ledger and redemption engine."""
