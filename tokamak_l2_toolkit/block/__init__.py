from tokamak_l2_toolkit.block.block import L2Block, L2BlockData, create_l2_block
from tokamak_l2_toolkit.block.header import encode_block_header, hash_block_header

__all__ = [
    "L2Block",
    "L2BlockData",
    "create_l2_block",
    "encode_block_header",
    "hash_block_header",
]
