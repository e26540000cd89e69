"""Whale detection engines for EVM chains and Solana."""

from whale_tracker.services.whale_detector.detector import EvmWhaleDetector, WhaleDetectionEngine
from whale_tracker.services.whale_detector.solana import SolanaWhaleDetector

__all__ = ["EvmWhaleDetector", "SolanaWhaleDetector", "WhaleDetectionEngine"]
