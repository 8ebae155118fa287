"""Core Layer: the repository engine and expiration policy.

Connects the domain contracts with whichever storage backend a concrete
repository chooses to instantiate.
"""
