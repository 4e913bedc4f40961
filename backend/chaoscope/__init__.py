"""Chaos proxy and hidden dependency analysis for HTTP services."""
