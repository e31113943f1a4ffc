"""
Contract ABIs consumed by the client.

Only the entry points the client calls are listed.
"""


def _view(name, inputs=(), outputs=("uint256",)):
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t} for t in outputs],
    }


def _write(name, inputs=(), outputs=()):
    return {
        "type": "function",
        "name": name,
        "stateMutability": "nonpayable",
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t} for t in outputs],
    }


AUCTION_ABI = [
    # Bidder actions
    _write(
        "placeBid",
        [
            ("encryptedAmount", "bytes"),
            ("inputProof", "bytes"),
            ("totalAmount", "uint256"),
            ("tokenQuantity", "uint256"),
        ],
    ),
    _write("cancelBid", [("bidIndex", "uint256")]),
    _write("claimTokensAndRefund"),
    # Administrative
    _write("finalizePrices"),
    # Views
    _view("getUserBids", [("user", "address")], ("uint256[]", "uint256")),
    _view("getUserAllocation", [("user", "address")], ("uint256", "uint256", "bool")),
    _view("auctionEnd"),
    _view("claimStart"),
    _view("clearingPrice"),
    _view("indicativeClearingPrice"),
    _view("priceFinalized", outputs=("bool",)),
    _view("floorPrice"),
    _view("tokenSupply"),
]

ERC20_ABI = [
    _view("balanceOf", [("account", "address")]),
    _view("allowance", [("owner", "address"), ("spender", "address")]),
    _write("approve", [("spender", "address"), ("amount", "uint256")], ("bool",)),
]
