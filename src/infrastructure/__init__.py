"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Local disk and S3-compatible object storage
- video: FFmpeg/FFprobe command line tools
- database: SQLite persistence for video records

These wrappers implement the interfaces defined in core.media.ports.
"""
