"""Role and permission constants.

Accounts are either parents or children.  Each role carries a fixed set
of permission names which the ``require_permissions`` dependency in
``auth`` checks.  Keeping the mapping here makes it easy to audit who
may do what.
"""

ROLE_PARENT = "parent"
ROLE_CHILD = "child"

PERM_MANAGE_FAMILY = "manage_family"
PERM_MANAGE_CHILDREN = "manage_children"
PERM_ADD_TRANSACTION = "add_transaction"
PERM_VIEW_TRANSACTIONS = "view_transactions"
PERM_MANAGE_ALLOWANCE = "manage_allowance"
PERM_MANAGE_BUDGETS = "manage_budgets"
PERM_MANAGE_SAVINGS = "manage_savings"
PERM_CONTRIBUTE_GOALS = "contribute_goals"
PERM_MANAGE_GOALS = "manage_goals"
PERM_MANAGE_TASKS = "manage_tasks"
PERM_COMPLETE_TASKS = "complete_tasks"
PERM_MANAGE_GIFTS = "manage_gifts"
PERM_WRITE_THANK_YOU = "write_thank_you"
PERM_SPEND_POINTS = "spend_points"

ALL_PERMISSIONS = [
    PERM_MANAGE_FAMILY,
    PERM_MANAGE_CHILDREN,
    PERM_ADD_TRANSACTION,
    PERM_VIEW_TRANSACTIONS,
    PERM_MANAGE_ALLOWANCE,
    PERM_MANAGE_BUDGETS,
    PERM_MANAGE_SAVINGS,
    PERM_CONTRIBUTE_GOALS,
    PERM_MANAGE_GOALS,
    PERM_MANAGE_TASKS,
    PERM_COMPLETE_TASKS,
    PERM_MANAGE_GIFTS,
    PERM_WRITE_THANK_YOU,
    PERM_SPEND_POINTS,
]

ROLE_DEFAULT_PERMISSIONS = {
    ROLE_PARENT: [
        PERM_MANAGE_FAMILY,
        PERM_MANAGE_CHILDREN,
        PERM_ADD_TRANSACTION,
        PERM_VIEW_TRANSACTIONS,
        PERM_MANAGE_ALLOWANCE,
        PERM_MANAGE_BUDGETS,
        PERM_MANAGE_SAVINGS,
        PERM_CONTRIBUTE_GOALS,
        PERM_MANAGE_GOALS,
        PERM_MANAGE_TASKS,
        PERM_MANAGE_GIFTS,
    ],
    ROLE_CHILD: [
        PERM_VIEW_TRANSACTIONS,
        PERM_MANAGE_SAVINGS,
        PERM_CONTRIBUTE_GOALS,
        PERM_COMPLETE_TASKS,
        PERM_WRITE_THANK_YOU,
        PERM_SPEND_POINTS,
    ],
}


def get_default_permissions_for_role(role: str) -> list[str]:
    return ROLE_DEFAULT_PERMISSIONS.get(role, [])
