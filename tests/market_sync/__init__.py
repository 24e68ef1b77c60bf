"""Tests for market sync."""
