"""Configuration — settings, discovery, and logging setup."""
