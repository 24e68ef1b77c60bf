"""Tests for the market pricing engine."""
