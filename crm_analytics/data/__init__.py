"""
Storefront CRM Analytics
Demo Data Module
"""
from .generators import DemoDataGenerator, DemoDataset

__all__ = ["DemoDataGenerator", "DemoDataset"]
