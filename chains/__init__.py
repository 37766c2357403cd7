"""
chains - JSON-RPC transport and block-time resolution.

- providers.py: RPCProvider with endpoint failover and per-endpoint stats
- block.py: Block fetching and payload parsing
- block_time.py: BlockTimeResolver (timestamp -> block number)
"""
