"""Test suite for the identity provider."""
