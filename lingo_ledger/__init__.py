"""
Lingo Ledger.

Usage, cost, feedback and engagement analytics for a language-learning app.
"""

__version__ = "0.1.0"
