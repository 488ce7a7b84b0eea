"""Adapter layer package for read-only chain state boundaries."""

from .chain_errors import ChainReadConnectionError, ChainReadError, ChainReadRevertedError, ChainReadTimeoutError
from .interfaces import ChainStatePort
from .json_rpc_chain import JsonRpcChainStateAdapter

__all__ = [
	"ChainReadConnectionError",
	"ChainReadError",
	"ChainReadRevertedError",
	"ChainReadTimeoutError",
	"ChainStatePort",
	"JsonRpcChainStateAdapter",
]
