"""Inference adapters. Each module exposes `build()` for DI by module path."""
