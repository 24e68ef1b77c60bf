"""Tests for marketplace data sources."""
