"""Reward claim — payment-gated Merkle reward-claim settlement engine."""

__version__ = "0.1.0"
