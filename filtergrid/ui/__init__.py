"""UI layer for filtergrid (PyQt6)"""
