"""
registry.py - Token whitelist

TokenRegistry holds the ordered roster of whitelisted tokens together with
each token's target weight, current price and bound asset address.

The roster is append-only and capped at FundConfig.max_tokens. Target
weights are fixed once a token is added; only prices change afterwards.
Owner checks and the self-reference check live in IndexFund.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Dict, List, Tuple

from .core import (
    TokenEntry, AssetContract, MAX_TOKENS,
    TooManyTokens, DuplicateIdentifier, InvalidWeight, InvalidPrice, UnsupportedToken,
)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class TokenRegistry:
    """
    Ordered, bounded set of whitelisted tokens.

    Example:
        registry = TokenRegistry()
        registry.add_token("A", 2500, asset_a)
        registry.update_price("A", 100)
        registry.target_weight("A")   # 2500
    """

    def __init__(self, max_tokens: int = MAX_TOKENS):
        self.max_tokens = max_tokens
        self._roster: List[str] = []
        self._entries: Dict[str, TokenEntry] = {}

    # ========================================================================
    # READS
    # ========================================================================

    def __len__(self) -> int:
        return len(self._roster)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._entries

    def is_supported(self, identifier: str) -> bool:
        return identifier in self._entries

    def target_weight(self, identifier: str) -> int:
        """Target weight in bps, 0 for unknown identifiers."""
        entry = self._entries.get(identifier)
        return entry.target_weight if entry else 0

    def price(self, identifier: str) -> int:
        """Current price, 0 for unknown identifiers or tokens never priced."""
        entry = self._entries.get(identifier)
        return entry.price if entry else 0

    def get(self, identifier: str) -> TokenEntry:
        """
        Return the entry for a registered token.

        Raises:
            UnsupportedToken: if the identifier is not registered
        """
        entry = self._entries.get(identifier)
        if entry is None:
            raise UnsupportedToken(f"Token {identifier} not registered")
        return entry

    def identifiers(self) -> List[str]:
        """Registered identifiers in the order they were added."""
        return list(self._roster)

    def entries(self) -> Tuple[TokenEntry, ...]:
        return tuple(self._entries[i] for i in self._roster)

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def check_add(self, identifier: str, target_weight: int) -> None:
        """Raise the first reason add_token() would be rejected. Does not mutate."""
        if len(self._roster) >= self.max_tokens:
            raise TooManyTokens(
                f"Roster full: {len(self._roster)} of {self.max_tokens} tokens registered"
            )
        if identifier in self._entries:
            raise DuplicateIdentifier(f"Token {identifier} already registered")
        if not _is_int(target_weight) or target_weight <= 0:
            raise InvalidWeight(f"target_weight must be a positive integer, got {target_weight!r}")

    def add_token(self, identifier: str, target_weight: int, asset: AssetContract) -> TokenEntry:
        """
        Append a token to the roster.

        Args:
            identifier: unique symbolic identifier
            target_weight: desired allocation in bps (> 0)
            asset: external asset contract; its address is bound to the token

        Returns:
            The new TokenEntry (price 0)

        Raises:
            TooManyTokens: if the roster is full
            DuplicateIdentifier: if the identifier is already registered
            InvalidWeight: if target_weight is not a positive integer
        """
        self.check_add(identifier, target_weight)
        entry = TokenEntry(
            identifier=identifier,
            target_weight=target_weight,
            asset_address=asset.address,
        )
        self._roster.append(identifier)
        self._entries[identifier] = entry
        return entry

    def update_price(self, identifier: str, price: int) -> TokenEntry:
        """
        Overwrite a token's price. No staleness or oracle checks are made.

        Raises:
            UnsupportedToken: if the identifier is not registered
            InvalidPrice: if price is not a positive integer
        """
        entry = self.get(identifier)
        if not _is_int(price) or price <= 0:
            raise InvalidPrice(f"price must be a positive integer, got {price!r}")
        updated = replace(entry, price=price)
        self._entries[identifier] = updated
        return updated

    # ========================================================================
    # ROLLBACK
    # ========================================================================

    def snapshot(self) -> Tuple[List[str], Dict[str, TokenEntry]]:
        # Entries are frozen, so shallow copies are enough.
        return list(self._roster), dict(self._entries)

    def restore(self, snapshot: Tuple[List[str], Dict[str, TokenEntry]]) -> None:
        roster, entries = snapshot
        self._roster = list(roster)
        self._entries = dict(entries)
