"""
Storefront CRM Analytics
HTTP API Module
"""
