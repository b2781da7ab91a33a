"""Token persistence."""

from .token_store import TokenKind, TokenRecord, TokenStore

__all__ = ["TokenKind", "TokenRecord", "TokenStore"]
