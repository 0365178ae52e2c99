"""s3shelf - typed record storage on S3-compatible object stores.

This package provides:
- Key normalization and typed JSON encoding for stored records
- An async object-store utility (listing, conditional writes, prefix deletes)
- A single-flight, read-through cache for "most recent N records" queries
- A FastAPI adapter and an operator CLI
"""

__version__ = "0.1.0"
