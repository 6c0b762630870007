"""Failure isolation for collaborator calls."""
