"""
Vaultstream - video storage and delivery service.

This package contains the complete application:
- core: Framework-agnostic media logic (references, signing, upload pipeline)
- infrastructure: Storage backends, FFmpeg tools and the record database
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
