"""Proposal validation."""
