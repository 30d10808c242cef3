"""Batch task protocol and the ledger finalization tasks."""
