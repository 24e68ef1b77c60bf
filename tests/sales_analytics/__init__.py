"""Tests for sales analytics."""
