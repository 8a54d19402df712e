"""HTTP API for period reconciliation."""
