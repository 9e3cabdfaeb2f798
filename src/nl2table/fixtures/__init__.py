"""Curated fixture datasets."""

from src.nl2table.fixtures.provider import CuratedFixtureProvider, FixtureProvider, normalize_field

__all__ = ["CuratedFixtureProvider", "FixtureProvider", "normalize_field"]
