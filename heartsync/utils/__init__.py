"""Shared helpers for HeartSync configuration."""
