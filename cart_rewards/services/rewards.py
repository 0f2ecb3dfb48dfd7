"""
Milestone and free-product eligibility

Cart value is compared against an ordered threshold table to decide how many
free products a shopper may pick. The table is plain data: the default below,
the FREE_PRODUCT_TIERS setting, or a store's free_products milestones.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from cart_rewards.models.schemas import MilestoneModel, RewardType, RewardSummary
from cart_rewards.utils.helpers import format_price

logger = logging.getLogger(__name__)

Tier = Tuple[float, int]

DEFAULT_FREE_PRODUCT_TIERS: Tuple[Tier, ...] = ((5000, 3), (4000, 2), (3000, 1))

LOCKED = "locked"
SELECTING = "selecting"


def max_free_products(cart_value: float, tiers: Sequence[Tier] = DEFAULT_FREE_PRODUCT_TIERS) -> int:
    """Free products allowed for a cart value: the count of the highest threshold reached, else 0"""
    for threshold, count in sorted(tiers, key=lambda tier: tier[0], reverse=True):
        if cart_value >= threshold:
            return count
    return 0


def tiers_from_milestones(milestones: Iterable[MilestoneModel]) -> Tuple[Tier, ...]:
    """Build a threshold table from a store's active free_products milestones"""
    tiers = [
        (m.threshold_amount, m.free_product_count)
        for m in milestones
        if m.is_active and m.reward_type == RewardType.FREE_PRODUCTS
    ]
    return tuple(sorted(tiers, key=lambda tier: tier[0], reverse=True))


@dataclass
class MilestoneStatus:
    unlocked: List[MilestoneModel]
    next: Optional[MilestoneModel]
    amount_to_next: Optional[float]


def milestone_status(milestones: Iterable[MilestoneModel], cart_value: float) -> MilestoneStatus:
    """Split active milestones into unlocked ones and the next one to reach"""
    ordered = sorted((m for m in milestones if m.is_active), key=lambda m: m.threshold_amount)
    unlocked = [m for m in ordered if cart_value >= m.threshold_amount]
    upcoming = next((m for m in ordered if cart_value < m.threshold_amount), None)
    amount_to_next = round(upcoming.threshold_amount - cart_value, 2) if upcoming else None
    return MilestoneStatus(unlocked=unlocked, next=upcoming, amount_to_next=amount_to_next)


def has_delivery_reward(milestones: Iterable[MilestoneModel], cart_value: float) -> bool:
    return any(
        m.is_active and m.reward_type == RewardType.FREE_DELIVERY and cart_value >= m.threshold_amount
        for m in milestones
    )


def summarize_rewards(milestones: Sequence[MilestoneModel], cart_value: float,
                      fallback_tiers: Sequence[Tier] = DEFAULT_FREE_PRODUCT_TIERS) -> RewardSummary:
    """
    Build the reward panel shown in the cart drawer

    Args:
        milestones: Active milestones of the store
        cart_value: Current cart total
        fallback_tiers: Threshold table used when the store has no free_products milestones

    Returns:
        RewardSummary: Free product allowance, delivery flag and progress to the next milestone
    """
    tiers = tiers_from_milestones(milestones) or tuple(fallback_tiers)
    status = milestone_status(milestones, cart_value)

    highest = max((m.threshold_amount for m in milestones if m.is_active), default=0)
    progress = min(cart_value / highest * 100, 100.0) if highest > 0 else 0.0

    message = None
    if status.next is not None:
        currency = status.next.currency
        message = f"Add {format_price(status.amount_to_next, currency)} more to unlock {status.next.name.lower()}"

    return RewardSummary(
        cart_value=cart_value,
        max_free_products=max_free_products(cart_value, tiers),
        has_free_delivery=has_delivery_reward(milestones, cart_value),
        unlocked_milestones=status.unlocked,
        next_milestone=status.next,
        amount_to_next=status.amount_to_next,
        progress_percentage=round(progress, 2),
        message=message,
    )


@dataclass
class FreeProductSelection:
    """
    Shopper's pick of free products for the current cart value.

    The selection is re-evaluated whenever the cart value changes; it is never
    finished. With no allowance the selection is locked and nothing is shown.
    """
    cart_value: float = 0
    tiers: Sequence[Tier] = DEFAULT_FREE_PRODUCT_TIERS
    selected: List[str] = field(default_factory=list)
    applied: List[str] = field(default_factory=list)

    def __post_init__(self):
        self._trim()

    @property
    def max_allowed(self) -> int:
        return max_free_products(self.cart_value, self.tiers)

    @property
    def state(self) -> str:
        return LOCKED if self.max_allowed == 0 else SELECTING

    @property
    def remaining(self) -> int:
        return max(self.max_allowed - len(self.selected), 0)

    @property
    def is_applied(self) -> bool:
        return self.applied == self.selected

    def can_select(self, product_id: str) -> bool:
        return product_id in self.selected or len(self.selected) < self.max_allowed

    def toggle(self, product_id: str) -> bool:
        """Deselect a selected product, or select a new one while allowance remains"""
        if product_id in self.selected:
            self.selected.remove(product_id)
            return True
        if len(self.selected) < self.max_allowed:
            self.selected.append(product_id)
            return True
        logger.debug(f"Rejected free product {product_id}: {len(self.selected)} of {self.max_allowed} selected")
        return False

    def update_cart_value(self, cart_value: float) -> List[str]:
        """
        Re-evaluate the allowance for a new cart value

        Returns:
            list: Product ids dropped because they no longer fit, most recent first
        """
        self.cart_value = cart_value
        return self._trim()

    def apply(self) -> List[str]:
        self.applied = list(self.selected)
        return self.applied

    def _trim(self) -> List[str]:
        dropped = []
        while len(self.selected) > self.max_allowed:
            dropped.append(self.selected.pop())
        if dropped:
            self.applied = [p for p in self.applied if p in self.selected]
        return dropped
