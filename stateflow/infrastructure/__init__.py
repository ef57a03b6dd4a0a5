"""Infrastructure layer: document store clients and repository implementations."""
