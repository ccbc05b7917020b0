"""
Demo Data Module
"""
from .generators import CrmDataGenerator

__all__ = ["CrmDataGenerator"]
