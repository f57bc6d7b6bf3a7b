"""
Jotter Backend — Normalization Policies (Dedup Keys)
====================================================

What:  Maps submitted text to the canonical key used to detect duplicates.
How:   Each policy is a small class with a `name`, a `version` and a pure
       `key(text)` method. The active policy is picked by NORM_POLICY.

Policies:
    fold   "  Hello   World " → "hello world"
    card   "Kártya #: 00123 ok" → "00123"        (falls back to fold)
    token  8th whitespace token's leading digits  (fold below 8 tokens)

Versioning:
    Entries store the `version` string of the policy that produced their key.
    Switching policies leaves existing keys in the old format until
    `python -m app.backfill` recomputes them.
"""

import re
import unicodedata
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional, Type

_WHITESPACE_RE = re.compile(r"\s+")
_LEADING_DIGITS_RE = re.compile(r"^[0-9]+")

DEFAULT_CARD_MARKERS = ("card", "karta", "kartya")


def fold_whitespace(text: str) -> str:
    """Trim, collapse whitespace runs to a single space and lowercase."""
    return _WHITESPACE_RE.sub(" ", text.strip()).lower()


def strip_diacritics(text: str) -> str:
    """Decompose to NFKD and drop combining marks (á → a, ő → o)."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


class NormalizationPolicy(ABC):
    """
    Contract:
        - key() is pure and deterministic
        - empty or whitespace-only input returns ""; callers reject it
    """

    name: str = ""
    revision: int = 1

    @property
    def version(self) -> str:
        return f"{self.name}/{self.revision}"

    @abstractmethod
    def key(self, text: str) -> str:
        """Return the dedup key for `text`."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} version='{self.version}'>"


class FoldPolicy(NormalizationPolicy):
    name = "fold"

    def key(self, text: str) -> str:
        return fold_whitespace(text or "")


class CardNumberPolicy(NormalizationPolicy):
    """
    Extracts a labelled number such as "card #4411" or "Kártya: 12".

    Pattern: word boundary, marker token, optional punctuation, digits.
    Matching runs on diacritic-free lowercase text so "Kártya" and "kartya"
    are the same marker.
    """

    name = "card"

    def __init__(self, markers: Optional[Iterable[str]] = None):
        cleaned = [strip_diacritics(m.strip().lower()) for m in (markers or DEFAULT_CARD_MARKERS)]
        self.markers = tuple(m for m in cleaned if m)
        if not self.markers:
            raise ValueError("CardNumberPolicy needs at least one marker")
        alternation = "|".join(re.escape(m) for m in self.markers)
        self._pattern = re.compile(rf"\b(?:{alternation})\s*[#:.\-]*\s*([0-9]+)")

    def key(self, text: str) -> str:
        folded = fold_whitespace(strip_diacritics(text or ""))
        match = self._pattern.search(folded)
        if match:
            return match.group(1)
        return fold_whitespace(text or "")


class PositionalTokenPolicy(NormalizationPolicy):
    """
    Uses the leading digit run of the token at `position` (0-based, default 7).

    Texts with too few tokens use the fold key. A token without leading
    digits gives an empty key, which the create path rejects.
    """

    name = "token"

    def __init__(self, position: int = 7):
        self.position = position

    def key(self, text: str) -> str:
        folded = fold_whitespace(text or "")
        tokens = folded.split(" ") if folded else []
        if len(tokens) > self.position:
            match = _LEADING_DIGITS_RE.match(tokens[self.position])
            return match.group(0) if match else ""
        return folded


POLICIES: Dict[str, Type[NormalizationPolicy]] = {
    FoldPolicy.name: FoldPolicy,
    CardNumberPolicy.name: CardNumberPolicy,
    PositionalTokenPolicy.name: PositionalTokenPolicy,
}


def build_policy(name: str, card_markers: Optional[Iterable[str]] = None) -> NormalizationPolicy:
    """
    Instantiate the policy registered under `name`.

    Raises:
        ValueError: unknown policy name
    """
    try:
        policy_cls = POLICIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown normalization policy '{name}'. Must be one of: {sorted(POLICIES)}"
        ) from None
    if policy_cls is CardNumberPolicy:
        return CardNumberPolicy(card_markers)
    return policy_cls()
