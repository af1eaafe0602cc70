"""Collection NFT provisioning and program-derived address derivation for Solana."""

__version__ = "0.1.0"
