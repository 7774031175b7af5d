"""Shared test entities and collaborators."""
