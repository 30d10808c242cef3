"""Sweep executor."""
