"""
Coin wallet, shop purchases and time-limited effects.

Stocked items (``stock > 0``) refill once per day; ``-1`` means unlimited.
The transaction log keeps the most recent 100 entries.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from models import (
    ActiveEffect,
    CoinTransaction,
    Inventory,
    OwnedItem,
    ShopCategory,
    ShopEffectType,
    ShopItem,
    ShopItemEffect,
    ShopResult,
)

logger = logging.getLogger(__name__)

TRANSACTION_LIMIT = 100

SHOP_ITEMS: list[ShopItem] = [
    ShopItem(
        id="streak-freeze",
        name="Streak Shield",
        description="Protect your streak for one missed day",
        cost=50,
        category=ShopCategory.CONSUMABLE,
        max_ownable=3,
        effect=ShopItemEffect(type=ShopEffectType.STREAK_FREEZE, value=1),
    ),
    ShopItem(
        id="deadline-extend-1d",
        name="Time Crystal",
        description="Extend a hard deadline by 1 day (max 2 per task)",
        cost=75,
        category=ShopCategory.CONSUMABLE,
        max_ownable=5,
        effect=ShopItemEffect(type=ShopEffectType.DEADLINE_EXTEND, value=1),
    ),
    ShopItem(
        id="challenge-reroll",
        name="Destiny Dice",
        description="Reroll one daily challenge",
        cost=30,
        category=ShopCategory.CONSUMABLE,
        stock=3,
        max_ownable=1,
        effect=ShopItemEffect(type=ShopEffectType.CHALLENGE_REROLL, value=1),
    ),
    ShopItem(
        id="xp-boost-small",
        name="Minor XP Scroll",
        description="+10% XP for 1 hour",
        cost=40,
        category=ShopCategory.BOOST,
        max_ownable=3,
        effect=ShopItemEffect(type=ShopEffectType.XP_BOOST, value=0.1, duration_hours=1),
    ),
    ShopItem(
        id="xp-boost-medium",
        name="Greater XP Scroll",
        description="+25% XP for 2 hours",
        cost=100,
        category=ShopCategory.BOOST,
        max_ownable=2,
        effect=ShopItemEffect(type=ShopEffectType.XP_BOOST, value=0.25, duration_hours=2),
    ),
    ShopItem(
        id="companion-treat",
        name="Companion Treat",
        description="Restore 20 companion energy",
        cost=25,
        category=ShopCategory.COMPANION,
        max_ownable=10,
        effect=ShopItemEffect(type=ShopEffectType.COMPANION_ITEM, value=20),
    ),
]


def get_item(item_id: str) -> ShopItem | None:
    return next((i for i in SHOP_ITEMS if i.id == item_id), None)


def item_count(inventory: Inventory, item_id: str) -> int:
    owned = next((o for o in inventory.owned_items if o.item_id == item_id), None)
    return owned.quantity if owned else 0


def _with_quantity(inventory: Inventory, item_id: str, delta: int) -> list[OwnedItem]:
    items = []
    found = False
    for owned in inventory.owned_items:
        if owned.item_id == item_id:
            found = True
            owned = owned.model_copy(update={"quantity": max(0, owned.quantity + delta)})
        if owned.quantity > 0:
            items.append(owned)
    if not found and delta > 0:
        items.append(OwnedItem(item_id=item_id, quantity=delta))
    return items


def _log(inventory: Inventory, tx: CoinTransaction) -> list[CoinTransaction]:
    return [*inventory.transactions, tx][-TRANSACTION_LIMIT:]


# ──────────────────────────────────────────────────────────────
# Wallet
# ──────────────────────────────────────────────────────────────

def earn_coins(inventory: Inventory, amount: int, source: str, now: datetime, description: str = "") -> Inventory:
    if amount < 0:
        raise ValueError("amount must be non-negative")
    if amount == 0:
        return inventory
    tx = CoinTransaction(amount=amount, kind="earn", source=source, description=description, timestamp=now)
    return inventory.model_copy(update={"coins": inventory.coins + amount, "transactions": _log(inventory, tx)})


def spend_coins(inventory: Inventory, amount: int, source: str, now: datetime, description: str = "") -> ShopResult:
    if amount < 0:
        raise ValueError("amount must be non-negative")
    if inventory.coins < amount:
        return ShopResult(ok=False, inventory=inventory, reason="insufficient_coins", message="Not enough coins")
    tx = CoinTransaction(amount=amount, kind="spend", source=source, description=description, timestamp=now)
    updated = inventory.model_copy(update={"coins": inventory.coins - amount, "transactions": _log(inventory, tx)})
    return ShopResult(ok=True, inventory=updated)


def revoke_coins(inventory: Inventory, amount: int, source: str, now: datetime, description: str = "") -> Inventory:
    """Take back an earlier credit; the balance never goes below zero."""
    if amount < 0:
        raise ValueError("amount must be non-negative")
    amount = min(amount, inventory.coins)
    if amount == 0:
        return inventory
    tx = CoinTransaction(amount=amount, kind="revoke", source=source, description=description, timestamp=now)
    return inventory.model_copy(update={"coins": inventory.coins - amount, "transactions": _log(inventory, tx)})


def today_earnings(inventory: Inventory, today: date) -> int:
    """Net earnings today; revoked credits count against them."""
    signs = {"earn": 1, "revoke": -1}
    return sum(
        signs.get(t.kind, 0) * t.amount for t in inventory.transactions if t.timestamp.date() == today
    )


# ──────────────────────────────────────────────────────────────
# Shop
# ──────────────────────────────────────────────────────────────

def reset_daily_stock(inventory: Inventory, today: date) -> Inventory:
    if inventory.stock_date == today:
        return inventory
    stock = {item.id: item.stock for item in SHOP_ITEMS if item.stock > 0}
    return inventory.model_copy(update={"shop_stock": stock, "stock_date": today})


def current_stock(inventory: Inventory, item: ShopItem) -> int:
    if item.stock <= 0:
        return -1
    return inventory.shop_stock.get(item.id, 0)


def purchase_item(inventory: Inventory, item_id: str, now: datetime) -> ShopResult:
    """Checks run in order: exists, in stock today, under the cap, affordable."""
    item = get_item(item_id)
    if item is None:
        return ShopResult(ok=False, inventory=inventory, reason="not_found", message="Item not found")

    inventory = reset_daily_stock(inventory, now.date())
    if item.stock > 0 and current_stock(inventory, item) <= 0:
        return ShopResult(ok=False, inventory=inventory, reason="out_of_stock", message="Out of stock for today")
    if item_count(inventory, item_id) >= item.max_ownable:
        return ShopResult(
            ok=False, inventory=inventory, reason="max_owned", message=f"Maximum owned: {item.max_ownable}"
        )

    paid = spend_coins(inventory, item.cost, "shop", now, f"Purchased {item.name}")
    if not paid.ok:
        return paid

    inventory = paid.inventory
    stock = dict(inventory.shop_stock)
    if item.stock > 0:
        stock[item.id] = max(0, stock.get(item.id, item.stock) - 1)

    updated = inventory.model_copy(update={
        "owned_items": _with_quantity(inventory, item_id, 1),
        "shop_stock": stock,
    })
    logger.info(f"Purchased {item.name} for {item.cost} coins")
    return ShopResult(ok=True, inventory=updated, message=f"Purchased {item.name}!")


def refund_purchase(inventory: Inventory, item_id: str, now: datetime) -> Inventory:
    """Inverse of a purchase, used by undo. No-op if the item is gone."""
    item = get_item(item_id)
    if item is None or item_count(inventory, item_id) <= 0:
        return inventory
    stock = dict(inventory.shop_stock)
    if item.stock > 0:
        stock[item.id] = min(item.stock, stock.get(item.id, 0) + 1)
    inventory = inventory.model_copy(update={
        "owned_items": _with_quantity(inventory, item_id, -1),
        "shop_stock": stock,
    })
    return earn_coins(inventory, item.cost, "refund", now, f"Refunded {item.name}")


def use_item(inventory: Inventory, item_id: str, now: datetime) -> ShopResult:
    if item_count(inventory, item_id) <= 0:
        return ShopResult(ok=False, inventory=inventory, reason="not_owned", message="Item not in inventory")
    item = get_item(item_id)
    if item is None or item.effect is None:
        return ShopResult(ok=False, inventory=inventory, reason="no_effect", message="Item has no effect")

    effects = list(inventory.active_effects)
    if item.effect.duration_hours:
        effects.append(ActiveEffect(
            effect_type=item.effect.type,
            value=item.effect.value,
            expires_at=now + timedelta(hours=item.effect.duration_hours),
        ))

    updated = inventory.model_copy(update={
        "owned_items": _with_quantity(inventory, item_id, -1),
        "active_effects": effects,
    })
    return ShopResult(ok=True, inventory=updated, effect=item.effect, message=f"Used {item.name}!")


# ──────────────────────────────────────────────────────────────
# Effects
# ──────────────────────────────────────────────────────────────

def active_boost(inventory: Inventory, effect_type: ShopEffectType, now: datetime) -> float:
    """Value of the first live effect of this type, 0 if none."""
    effect_type = ShopEffectType(effect_type)
    effect = next(
        (e for e in inventory.active_effects if e.effect_type == effect_type and e.expires_at > now),
        None,
    )
    return effect.value if effect else 0.0


def sweep_effects(inventory: Inventory, now: datetime) -> Inventory:
    live = [e for e in inventory.active_effects if e.expires_at > now]
    if len(live) == len(inventory.active_effects):
        return inventory
    return inventory.model_copy(update={"active_effects": live})
