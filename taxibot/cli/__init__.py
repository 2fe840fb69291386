"""CLI module for taxibot."""
