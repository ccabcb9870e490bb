# Streaming module for paged query delivery
from .channel import StreamChannel
from .engine import PagingEngine

__all__ = ['PagingEngine', 'StreamChannel']
