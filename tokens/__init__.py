"""
Token adapters (ERC20, ERC721, ERC1155) over an RPCProvider.
"""

from tokens.base import TokenAdapter
from tokens.erc20 import Erc20Adapter
from tokens.erc721 import Erc721Adapter
from tokens.erc1155 import Erc1155Adapter

__all__ = [
    "TokenAdapter",
    "Erc20Adapter",
    "Erc721Adapter",
    "Erc1155Adapter",
]
