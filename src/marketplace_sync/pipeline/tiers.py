"""
Tier resolution.

The marketplace reports a license's commercial size in three different
vocabularies (evaluation opportunity size, license tier, transaction tier).
Each parser maps its vocabulary onto one integer scale:
- N users → N
- Unlimited → 10001
- No commercial tier (evaluations, subscriptions, demos) → -1

Anything outside a vocabulary raises TierParseError. That is a data-quality
signal, not a recoverable condition.
"""

import re

from ..errors import TierParseError
from ..models.records import LicenseRecord, TransactionRecord

UNLIMITED_TIER = 10001
NO_TIER = -1

_UNLIMITED = 'Unlimited Users'
_SUBSCRIPTION = 'Subscription'
_NO_TIER_EVALUATION_SIZES = frozenset({'Unknown', 'Evaluation', 'NA', ''})
# 'Subscription' licenses carry their size in evaluation_opportunity_size instead
_NO_TIER_LICENSE_TIERS = frozenset({'Subscription', 'Evaluation', 'Demonstration License'})

_USERS_RE = re.compile(r'(\d+) Users')
_PER_UNIT_RE = re.compile(r'Per Unit Pricing \((\d+) users\)')
_DIGITS_RE = re.compile(r'\d+')


def tier_from_evaluation_size(size: str | None) -> int:
    """Parse an evaluation opportunity size ("50", "Unlimited Users", "NA", ...)."""
    if size is None or size in _NO_TIER_EVALUATION_SIZES:
        return NO_TIER
    if size == _UNLIMITED:
        return UNLIMITED_TIER
    if not _DIGITS_RE.fullmatch(size):
        raise TierParseError(
            f'Unknown evaluation opportunity size: {size}',
            context={'value': size},
        )
    return int(size)


def tier_from_license_tier(tier: str | None) -> int:
    """Parse a license tier ("25 Users", "Unlimited Users", "Evaluation", ...)."""
    if tier == _UNLIMITED:
        return UNLIMITED_TIER
    if tier in _NO_TIER_LICENSE_TIERS:
        return NO_TIER

    m = _USERS_RE.fullmatch(tier or '')
    if not m:
        raise TierParseError(f'Unknown license tier: {tier}', context={'value': tier})
    return int(m.group(1))


def tier_from_transaction_tier(tier: str | None) -> int:
    """Parse a transaction tier ("Per Unit Pricing (10 users)", "25 Users", ...)."""
    if tier == _UNLIMITED:
        return UNLIMITED_TIER

    m = _PER_UNIT_RE.fullmatch(tier or '') or _USERS_RE.fullmatch(tier or '')
    if not m:
        raise TierParseError(f'Unknown transaction tier: {tier}', context={'value': tier})
    return int(m.group(1))


def license_tier(license: LicenseRecord) -> int:
    """
    Commercial tier of a license.

    Subscription licenses report their size as the evaluation opportunity
    size; every other license uses its tier string. Evaluations resolve to
    NO_TIER even when an opportunity size is known.
    """
    if license.tier == _SUBSCRIPTION:
        return tier_from_evaluation_size(license.evaluation_opportunity_size)
    return tier_from_license_tier(license.tier)


def transaction_tier(transaction: TransactionRecord) -> int:
    return tier_from_transaction_tier(transaction.tier)


def ratchet_tier(*tiers: int, floor: int | None = None) -> int:
    """
    Merge tiers so the result only ever increases.

    Returns the maximum of all given tiers, never lower than the floor (a
    previously stored tier) and never lower than NO_TIER.
    """
    candidates = [NO_TIER, *tiers]
    if floor is not None:
        candidates.append(floor)
    return max(candidates)
