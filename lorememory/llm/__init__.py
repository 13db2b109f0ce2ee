"""Completion client and stream aggregation."""
