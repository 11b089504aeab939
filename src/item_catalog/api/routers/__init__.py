"""
item_catalog.api.routers

Route modules: items CRUD, health probes, logging diagnostics.
"""
