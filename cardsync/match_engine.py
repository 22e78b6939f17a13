"""
Deterministic card -> marketplace product matching.

Given one card and the de-duplicated candidate products of its set, pick the
product that represents that exact printing:

1. a human override wins outright (or is reported as orphaned),
2. candidates are narrowed by card number,
3. the survivors are ranked by art-style agreement using ordered preference
   tiers; within a tier the first product in API response order wins.

`MatchEngine.match` has no side effects besides debug logging and returns the
same result for the same inputs.
"""

import re
from typing import List, Mapping, Optional, Sequence, Tuple

from cardsync.classifier import classify, expected_style
from cardsync.config import SyncConfig
from cardsync.models.card import ArtStyle, Card
from cardsync.models.mapping import (
    Automated,
    ManualConfirmed,
    ManualOrphaned,
    MatchResult,
    Unmatched,
)
from cardsync.models.marketplace import MarketplaceProduct
from cardsync.utils.logger import matcher_logger

_TRAILING_DIGITS = re.compile(r"(\d+)\s*$")

Classified = Tuple[MarketplaceProduct, ArtStyle]


def _normalize_number(value: str) -> str:
    return re.sub(r"\s+", "", (value or "")).upper()


def _strip_leading_zeros(digits: str) -> str:
    return digits.lstrip("0") or "0"


def number_matches(candidate_number: str, base_id: str) -> bool:
    """
    True when a product's card number denotes `base_id`: exact, hyphen-stripped,
    or bare trailing digits ("118" for "OP13-118").
    """
    cand = _normalize_number(candidate_number)
    base = _normalize_number(base_id)
    if not cand or not base:
        return False
    if cand == base:
        return True
    if cand.replace("-", "") == base.replace("-", ""):
        return True
    if cand.isdigit():
        m = _TRAILING_DIGITS.search(base)
        if m and _strip_leading_zeros(cand) == _strip_leading_zeros(m.group(1)):
            return True
    return False


def filter_by_number(candidates: Sequence[MarketplaceProduct], base_id: str) -> List[MarketplaceProduct]:
    return [c for c in candidates if number_matches(c.card_number, base_id)]


def _first_with_style(classified: Sequence[Classified], style: ArtStyle) -> Optional[MarketplaceProduct]:
    for product, tag in classified:
        if tag == style:
            return product
    return None


class MatchEngine:
    """Applies the override / number / art-style rules configured in `SyncConfig`."""

    def __init__(self, config: SyncConfig, debug: bool = False):
        self.config = config
        self.debug = debug

    def match(
        self,
        card: Card,
        candidates: Sequence[MarketplaceProduct],
        overrides: Mapping[str, int],
    ) -> MatchResult:
        result = self._match(card, candidates, overrides)
        if self.debug:
            matcher_logger.debug(f"🧩 {card.id} -> {self._describe(result)}")
        return result

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _match(
        self,
        card: Card,
        candidates: Sequence[MarketplaceProduct],
        overrides: Mapping[str, int],
    ) -> MatchResult:
        override_id = overrides.get(card.id)
        if override_id is not None:
            for product in candidates:
                if product.product_id == override_id:
                    return ManualConfirmed(product=product)
            return ManualOrphaned(product_id=override_id)

        numbered = filter_by_number(candidates, card.base_id)
        if not numbered:
            return Unmatched(reason=f"no candidate numbered {card.base_id}")

        classified: List[Classified] = [(p, classify(p.product_name)) for p in numbered]
        if self.debug:
            for product, tag in classified:
                matcher_logger.debug(
                    f"   {card.id} candidate {product.product_id} [{tag.value}] {product.product_name}"
                )

        if card.set_id in self.config.reprint_sets:
            picked = self._pick_reprint(card, classified)
        elif card.is_parallel:
            picked = self._pick_parallel(card, classified)
        else:
            picked = self._pick_base(classified)

        product, rule = picked
        return Automated(product=product, rule=rule)

    def _pick_base(self, classified: Sequence[Classified]) -> Tuple[MarketplaceProduct, str]:
        product = _first_with_style(classified, ArtStyle.standard)
        if product is not None:
            return product, "standard"
        return classified[0][0], "first-candidate"

    def _pick_parallel(self, card: Card, classified: Sequence[Classified]) -> Tuple[MarketplaceProduct, str]:
        want = expected_style(card, self.config)

        product = _first_with_style(classified, want)
        if product is not None:
            return product, f"exact:{want.value}"

        for style in self.config.fallback_chains.get(want, []):
            product = _first_with_style(classified, style)
            if product is not None:
                return product, f"fallback:{style.value}"

        return self._any_non_standard(classified)

    def _pick_reprint(self, card: Card, classified: Sequence[Classified]) -> Tuple[MarketplaceProduct, str]:
        if not card.is_parallel:
            for style in self.config.reprint_base_chain:
                product = _first_with_style(classified, style)
                if product is not None:
                    return product, f"reprint:{style.value}"
            return classified[0][0], "first-candidate"

        for style in self.config.reprint_parallel_chain:
            product = _first_with_style(classified, style)
            if product is not None:
                return product, f"reprint:{style.value}"
        return self._pick_parallel(card, classified)

    @staticmethod
    def _any_non_standard(classified: Sequence[Classified]) -> Tuple[MarketplaceProduct, str]:
        for product, tag in classified:
            if tag != ArtStyle.standard:
                return product, "non-standard"
        return classified[0][0], "first-candidate"

    @staticmethod
    def _describe(result: MatchResult) -> str:
        if isinstance(result, (Automated, ManualConfirmed)):
            return f"{result.product.product_id} {result.product.product_name!r} via {result.rule}"
        if isinstance(result, ManualOrphaned):
            return f"override {result.product_id} not in set"
        return f"unmatched ({result.reason})"

