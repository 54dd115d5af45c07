"""
Alignment engines and the backends that run them.
"""
