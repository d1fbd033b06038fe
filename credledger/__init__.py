# credledger/__init__.py
"""
credledger: append-only, hash-chained ledger of signed credentials.
Issuers sign fingerprints of attribute assertions with Ed25519; blocks chain
them together so that issuance and revocation history is tamper-evident.
"""

__version__ = "0.1.0-dev"
