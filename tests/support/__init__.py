"""Shared test doubles for the comparator test suite."""
