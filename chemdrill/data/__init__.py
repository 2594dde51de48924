"""Bundled fallback datasets (<category>/<pool_type>.csv)."""
