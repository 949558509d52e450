"""Invocation handlers."""
