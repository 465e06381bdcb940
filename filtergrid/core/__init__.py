"""
Core package for filtergrid: row store, column indexes and the query engine
"""
