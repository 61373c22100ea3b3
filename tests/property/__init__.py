"""Property-based tests for the reconciliation engine."""
