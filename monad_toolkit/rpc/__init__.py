"""
RPC redundancy layer for the Monad toolkit.
"""
from .pool import RpcPool, RpcProvider, NodeError, validate_rpc_url

__all__ = ['RpcPool', 'RpcProvider', 'NodeError', 'validate_rpc_url']
