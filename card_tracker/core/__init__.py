"""Core types and constants."""
