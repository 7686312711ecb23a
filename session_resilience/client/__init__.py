"""Authenticated backend client and its lifecycle registry."""

from .handle import ClientHandle
from .registry import ClientFactory, ClientRegistry

__all__ = ["ClientHandle", "ClientFactory", "ClientRegistry"]
