"""
Client-side engine for a remote constant-product pool.

Subpackages:
    core        fixed-point amount conversion
    quote       quote / invariant engine and the input-generation tracker
    data        pool snapshots and the shared state cache
    runtime     state synchronizer and derived views
    execution   multi-step operation orchestrator
    contracts   requests and the wallet boundary
    sim         in-memory pool used by the demo and the tests
"""

__version__ = "0.1.0"
