"""
item_catalog.db.repositories

Data access objects; each wraps its statements in the database operation logger.
"""
