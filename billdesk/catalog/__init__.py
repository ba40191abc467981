"""Inbound product references from the external catalog."""
