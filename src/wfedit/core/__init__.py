"""
Core data structures: symbol sequences and wavefront offset storage.
"""
