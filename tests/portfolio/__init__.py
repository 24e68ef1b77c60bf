"""Tests for portfolio valuation and repricing."""
