"""Aggregate import for all API route modules."""

from . import (
    auth,
    families,
    children,
    transactions,
    budgets,
    allowances,
    savings,
    goals,
    achievements,
    tasks,
    notifications,
    devices,
    gift_links,
    gifts,
    thank_you_notes,
    analytics,
    wishlist,
    invites,
)

__all__ = [
    "auth",
    "families",
    "children",
    "transactions",
    "budgets",
    "allowances",
    "savings",
    "goals",
    "achievements",
    "tasks",
    "notifications",
    "devices",
    "gift_links",
    "gifts",
    "thank_you_notes",
    "analytics",
    "wishlist",
    "invites",
]
