"""
Credit balances, per-plan refills and generation cost.

Balances live in the Supabase `user_credits` table; every deduction is
logged to `credit_transactions`. A background loop (started from the app
lifespan when enabled) refills balances once per reset interval.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from weblitho.config import get_settings
from weblitho.database import get_client
from weblitho.model_catalog import credit_multiplier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Plan:
    name: str
    price: int
    monthly_credits: int
    daily_credits: int
    daily_refresh: int
    # Free caps at a fixed amount; paid plans cap at the user's monthly_credits
    fixed_cap: Optional[int] = None


PLANS = {
    "free": Plan("Free", 0, 5, 5, daily_refresh=5, fixed_cap=5),
    "pro": Plan("Pro", 20, 100, 20, daily_refresh=20),
    "business": Plan("Business", 50, 500, 50, daily_refresh=50),
}

PAID_PLANS = {"pro", "business"}


def plan_for(name: Optional[str]) -> Plan:
    return PLANS.get(name or "free", PLANS["free"])


def plan_cap(record: dict) -> float:
    plan = plan_for(record.get("plan"))
    if plan.fixed_cap is not None:
        return plan.fixed_cap
    return record.get("monthly_credits") or plan.monthly_credits


def compute_refill(record: dict) -> float:
    """Balance after one daily refill: balance + refresh, capped at the plan maximum."""
    balance = record.get("credits_balance") or 0
    if record.get("plan") not in PLANS:
        # No refresh for unrecognised plans, only the free cap
        return min(balance, PLANS["free"].fixed_cap)
    plan = PLANS[record["plan"]]
    return min(balance + plan.daily_refresh, plan_cap(record))


def _parse_ts(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def needs_reset(record: dict, now: Optional[datetime] = None, interval_hours: int = 24) -> bool:
    now = now or datetime.now(timezone.utc)
    last = _parse_ts(record.get("last_daily_reset"))
    return last is None or last < now - timedelta(hours=interval_hours)


def calculate_cost(output_length: int, model: Optional[str] = None) -> float:
    """Credits for one generation: a length band times the model multiplier, 2 dp."""
    if output_length < 2000:
        base = 0.2
    elif output_length < 5000:
        base = 0.5
    elif output_length < 10000:
        base = 0.8
    else:
        base = 1.2
    return round(base * credit_multiplier(model), 2)


# ---------------------------------------------------------------------------
# Supabase operations
# ---------------------------------------------------------------------------

async def get_credits(user_id: str) -> dict:
    """Fetch the user's credit row, creating it on first use."""
    client = get_client()
    result = (
        client.table("user_credits")
        .select("*")
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    if result.data:
        return result.data[0]

    logger.info("[credits] Creating credit record for %s", user_id)
    created = client.table("user_credits").insert({"user_id": user_id}).execute()
    return created.data[0] if created.data else {}


async def deduct_credits(user_id: str, amount: float, description: str | None = None,
                         project_id: str | None = None) -> bool:
    """Take `amount` credits from the user. False when the balance is too low."""
    credits = await get_credits(user_id)
    balance = credits.get("credits_balance") or 0
    if balance < amount:
        logger.info("[credits] %s needs %s credits but only has %s", user_id, amount, balance)
        return False

    client = get_client()
    client.table("user_credits").update({
        "credits_balance": round(balance - amount, 2),
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }).eq("user_id", user_id).execute()

    client.table("credit_transactions").insert({
        "user_id": user_id,
        "amount": -amount,
        "transaction_type": "generation",
        "description": description,
        "project_id": project_id,
    }).execute()
    return True


async def upgrade_plan(user_id: str, plan_name: str) -> dict:
    if plan_name not in PLANS:
        raise ValueError(f"Unknown plan: {plan_name}")
    plan = PLANS[plan_name]
    await get_credits(user_id)

    client = get_client()
    result = client.table("user_credits").update({
        "plan": plan_name,
        "monthly_credits": plan.monthly_credits,
        "daily_credits": plan.daily_credits,
        "credits_balance": plan.monthly_credits,
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }).eq("user_id", user_id).execute()
    logger.info("[credits] %s upgraded to %s", user_id, plan_name)
    return result.data[0] if result.data else {}


async def list_transactions(user_id: str, limit: int = 50) -> list:
    client = get_client()
    result = (
        client.table("credit_transactions")
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return result.data or []


async def reset_daily_credits(now: Optional[datetime] = None) -> int:
    """Refill every balance whose last reset is older than the reset interval.

    Per-user update failures are logged and skipped. Returns the number of
    users refilled.
    """
    now = now or datetime.now(timezone.utc)
    interval = get_settings().credit_reset_interval_hours
    cutoff = (now - timedelta(hours=interval)).isoformat()

    client = get_client()
    result = (
        client.table("user_credits")
        .select("*")
        .lt("last_daily_reset", cutoff)
        .execute()
    )
    users = [u for u in result.data or [] if needs_reset(u, now, interval)]
    logger.info("[credits] Found %d users to reset", len(users))

    reset_count = 0
    for user in users:
        new_balance = compute_refill(user)
        try:
            client.table("user_credits").update({
                "credits_balance": new_balance,
                "last_daily_reset": now.isoformat(),
                "updated_at": now.isoformat(),
            }).eq("id", user["id"]).execute()
        except Exception as e:
            logger.error("[credits] Error updating user %s: %s", user.get("id"), e)
            continue
        reset_count += 1
        logger.info(
            "[credits] Reset credits for user %s: %s -> %s",
            user.get("user_id"), user.get("credits_balance"), new_balance,
        )
    return reset_count


async def _credit_reset_loop(interval_seconds: float):
    while True:
        try:
            count = await reset_daily_credits()
            logger.info("[credit-scheduler] Reset credits for %d users", count)
        except Exception as e:
            logger.error("[credit-scheduler] Loop error: %s", e)
        await asyncio.sleep(interval_seconds)


def start_credit_scheduler() -> asyncio.Task:
    """Start the daily refill loop. Call from server lifespan."""
    interval = get_settings().credit_reset_interval_hours * 3600
    return asyncio.create_task(_credit_reset_loop(interval))
