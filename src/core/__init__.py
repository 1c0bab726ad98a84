"""
Core media logic for vaultstream.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or any infrastructure concerns. Backends and external tools are reached
only through the protocols in core.media.ports.
"""
