"""Linked additional-service resolution."""
