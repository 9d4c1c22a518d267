"""Compositing and image export."""
