"""Utility helpers for mtc."""
