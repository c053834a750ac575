"""Storage package: blob store and ephemeral key/value store adapters."""
