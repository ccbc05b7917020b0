"""
Ingestion Module
"""
from .seed_db import seed_records

__all__ = ["seed_records"]
