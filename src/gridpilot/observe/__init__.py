"""Structured event emission and timing."""
