"""Core: config, constants, and engine bootstrap."""
