"""Test suite for the sneaker portfolio tracker."""
