"""Core layer: configuration, logging, exceptions and backend protocols."""
