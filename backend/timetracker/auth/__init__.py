"""
Authentication and the permission catalog.
"""
