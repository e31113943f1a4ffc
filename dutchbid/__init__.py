"""
dutchbid - client for a sealed-bid Dutch auction with FHE-encrypted bids

- Phase tracking from contract timestamps and the finalization flag
- Encrypted bid submission (approve -> encrypt -> place -> confirm)
- Local reconciliation of public bid prices with private quantities
- Independent polling of every on-chain value the client displays
"""

__version__ = "0.1.0"
