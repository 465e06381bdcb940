"""
Utilities package for filtergrid (logging, configuration, constants)
"""
