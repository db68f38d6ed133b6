"""
Chunk-level protection built on the derived key set.
"""

from .chunk import ChunkAuthenticationError, ChunkProtector, protect_chunk, unprotect_chunk

__all__ = [
    'ChunkAuthenticationError',
    'ChunkProtector',
    'protect_chunk',
    'unprotect_chunk',
]
