"""Domain Interfaces (Ports):

Defines the contracts (Abstract Base Classes) that storage backends must
implement. The repository engine depends on these interfaces, not on
concrete implementations.
"""
