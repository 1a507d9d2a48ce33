"""Utility modules for rip."""
