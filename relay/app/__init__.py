"""
Media relay service application package.

Subpackages:
    - proxy: upstream relay endpoint (gate, fetch, streaming copy)
    - channels: predefined channel catalog and category filter
"""
