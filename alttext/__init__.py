"""alttext package

Image hosting with lazily generated accessibility descriptions. Subpackages:
`storage` (blobs, ephemeral keys), `images` (metadata), `enrichment` (funnel,
sanitizer, inference adapters), `ingest` (URL ingest) and `web` (FastAPI).
"""

__version__ = "0.3.0"
