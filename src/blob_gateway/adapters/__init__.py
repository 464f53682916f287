"""
Adapter layer for the blob gateway.

Contains the primary store adapter (MongoDB GridFS) and the secondary
mirror writer (S3 buckets per content category).
"""
