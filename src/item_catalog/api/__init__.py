"""
item_catalog.api

HTTP surface: app factory, dependencies and routers.
"""
