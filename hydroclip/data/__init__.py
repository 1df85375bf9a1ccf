"""Data models and ingestion helpers."""
