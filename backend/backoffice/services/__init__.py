"""Business services for the inventory stock ledger."""
