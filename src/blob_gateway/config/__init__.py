"""
Configuration management for the blob gateway.

Contains Pydantic settings and the loader for the JSON config file the
server is started with.
"""
