"""Chain layer -- log sources, Swap decoding, and block-date approximation."""

from galactic.chain.blocktime import BlockClock
from galactic.chain.decoder import SwapDecoder, decode_amounts, decode_swap
from galactic.chain.portal import PortalLogSource
from galactic.chain.rpc import RpcLogSource
from galactic.chain.source import LogSource, build_source

__all__ = [
    "BlockClock",
    "LogSource",
    "PortalLogSource",
    "RpcLogSource",
    "SwapDecoder",
    "build_source",
    "decode_amounts",
    "decode_swap",
]
