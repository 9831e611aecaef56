"""Render pipeline, caches and content models."""
