"""EventPass: wallet-proof sessions and access control for NFT-gated events."""

__version__ = "0.1.0"
