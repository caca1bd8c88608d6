"""Shared test fixtures: an in-memory artifact cache service."""
