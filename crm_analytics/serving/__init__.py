"""
Storefront CRM Analytics
Serving Layer
"""
