"""Whale Tracker Package.

This package watches Ethereum, BNB Chain and Solana for whale-sized transfers,
follows the receiving wallets to see which tokens they buy next, scores those
tokens for investment risk and surfaces newly launched pairs from Dexscreener.
"""

__version__ = "0.1.0"
__author__ = "Whale Tracker Contributors"
__email__ = "dev@whale-tracker.local"
