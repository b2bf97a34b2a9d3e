"""Batch metrics and reports over generated levels."""
