"""Filesystem-backed artifact server with per-project bearer-token access lists."""
