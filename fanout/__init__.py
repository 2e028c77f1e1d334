"""
Fan-out / fan-in SOL transfers across a main wallet and its distributed wallets.
"""

__version__ = "1.0.0"
