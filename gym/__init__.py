"""Gym backend: data-access layer and service entry point."""
