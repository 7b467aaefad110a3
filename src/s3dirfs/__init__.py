"""Hierarchical filesystem emulation on top of S3-compatible object stores."""
