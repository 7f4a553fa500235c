"""
Core modules for Lingo Ledger.

This package contains pricing, the model registry, usage recording,
the analytics and learning services, aggregation and gamification.
"""
