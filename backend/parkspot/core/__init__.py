"""Core configuration, logging, errors and identity."""
