"""Roofing estimate computation engine."""
