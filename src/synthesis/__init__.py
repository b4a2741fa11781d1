"""Skin profile synthesis, scoring and storage."""
