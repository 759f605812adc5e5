"""
normaize-ingest: file ingestion and normalization pipeline.

Turns uploaded CSV, JSON, Excel, XML and text files into bounded,
normalized Dataset records.
"""

__version__ = "0.1.0"
