"""
Shared utilities: logging, configuration, error taxonomy and constants.
"""
