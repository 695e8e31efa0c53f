"""Domain services: split validation, vote reconciliation, invalidation."""
