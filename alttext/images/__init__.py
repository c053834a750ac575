"""Image metadata: record model, store port and repositories."""
