"""
Request pipelines of the gateway: ingestion, retrieval and thumbnail derivation.
"""
