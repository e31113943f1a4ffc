"""On-chain access: read-only queries and the transaction-signing wallet"""
from dutchbid.chain.abi import AUCTION_ABI, ERC20_ABI
from dutchbid.chain.reader import ChainReader, from_wei, to_wei
from dutchbid.chain.wallet import Wallet, revert_reason

__all__ = [
    "AUCTION_ABI",
    "ERC20_ABI",
    "ChainReader",
    "from_wei",
    "to_wei",
    "Wallet",
    "revert_reason",
]
