"""Tests for size, SKU and provider payload normalization."""
