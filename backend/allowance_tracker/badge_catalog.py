"""Built-in achievement badges and point-shop rewards.

``ensure_badge_catalog`` in ``services.achievements`` inserts any entry
whose code (badges) or name (rewards) is not yet in the database.
"""

BADGES = [
    # saving
    {
        "code": "FIRST_SAVER",
        "name": "First Saver",
        "description": "Made your first deposit to savings",
        "category": "Saving",
        "rarity": "Common",
        "points": 10,
        "criteria_type": "SingleAction",
        "config": {"action_type": "first_savings_deposit", "triggers": ["SavingsDeposit"]},
    },
    {
        "code": "PENNY_PINCHER",
        "name": "Penny Pincher",
        "description": "Saved $10 total",
        "category": "Saving",
        "rarity": "Common",
        "points": 15,
        "criteria_type": "AmountThreshold",
        "config": {"amount_target": 10, "measure_field": "total_saved", "triggers": ["SavingsDeposit"]},
    },
    {
        "code": "MONEY_STACKER",
        "name": "Money Stacker",
        "description": "Saved $50 total",
        "category": "Saving",
        "rarity": "Uncommon",
        "points": 25,
        "criteria_type": "AmountThreshold",
        "config": {"amount_target": 50, "measure_field": "total_saved", "triggers": ["SavingsDeposit"]},
    },
    {
        "code": "SAVINGS_STAR",
        "name": "Savings Star",
        "description": "Saved $100 total",
        "category": "Saving",
        "rarity": "Rare",
        "points": 50,
        "criteria_type": "AmountThreshold",
        "config": {"amount_target": 100, "measure_field": "total_saved", "triggers": ["SavingsDeposit"]},
    },
    {
        "code": "SAVINGS_CHAMPION",
        "name": "Savings Champion",
        "description": "Saved $500 total",
        "category": "Saving",
        "rarity": "Epic",
        "points": 100,
        "criteria_type": "AmountThreshold",
        "config": {"amount_target": 500, "measure_field": "total_saved", "triggers": ["SavingsDeposit"]},
    },
    {
        "code": "EARLY_BIRD",
        "name": "Early Bird",
        "description": "Saved on the same day as allowance",
        "category": "Saving",
        "rarity": "Uncommon",
        "points": 20,
        "criteria_type": "TimeBasedAction",
        "config": {"time_condition": "same_day_as_allowance", "triggers": ["SavingsDeposit"]},
    },
    {
        "code": "SUPER_SAVER",
        "name": "Super Saver",
        "description": "Saved 50% of allowance in a month",
        "category": "Saving",
        "rarity": "Rare",
        "points": 40,
        "criteria_type": "PercentageTarget",
        "config": {"percentage_target": 50, "measure_field": "savings_rate", "triggers": ["StreakUpdated"]},
    },
    {
        "code": "FRUGAL_MASTER",
        "name": "Frugal Master",
        "description": "Saved 75% of allowance in a month",
        "category": "Saving",
        "rarity": "Epic",
        "points": 75,
        "criteria_type": "PercentageTarget",
        "config": {"percentage_target": 75, "measure_field": "savings_rate", "triggers": ["StreakUpdated"]},
    },
    # goals
    {
        "code": "GOAL_SETTER",
        "name": "Goal Setter",
        "description": "Created your first savings goal",
        "category": "Goals",
        "rarity": "Common",
        "points": 10,
        "criteria_type": "SingleAction",
        "config": {"action_type": "first_goal_created", "triggers": ["GoalCreated"]},
    },
    {
        "code": "GOAL_CRUSHER",
        "name": "Goal Crusher",
        "description": "Completed your first savings goal",
        "category": "Goals",
        "rarity": "Common",
        "points": 20,
        "criteria_type": "GoalCompletion",
        "config": {"goal_target": 1, "triggers": ["GoalCompleted"]},
    },
    {
        "code": "DREAM_ACHIEVER",
        "name": "Dream Achiever",
        "description": "Completed 5 savings goals",
        "category": "Goals",
        "rarity": "Rare",
        "points": 50,
        "criteria_type": "GoalCompletion",
        "config": {"goal_target": 5, "triggers": ["GoalCompleted"]},
    },
    {
        "code": "GOAL_MACHINE",
        "name": "Goal Machine",
        "description": "Completed 10 savings goals",
        "category": "Goals",
        "rarity": "Epic",
        "points": 100,
        "criteria_type": "GoalCompletion",
        "config": {"goal_target": 10, "triggers": ["GoalCompleted"]},
    },
    # chores
    {
        "code": "HELPER",
        "name": "Helper",
        "description": "Completed your first task",
        "category": "Chores",
        "rarity": "Common",
        "points": 10,
        "criteria_type": "SingleAction",
        "config": {"action_type": "first_task_completed", "triggers": ["TaskCompleted"]},
    },
    {
        "code": "HARD_WORKER",
        "name": "Hard Worker",
        "description": "Completed 10 tasks",
        "category": "Chores",
        "rarity": "Common",
        "points": 20,
        "criteria_type": "CountThreshold",
        "config": {"count_target": 10, "measure_field": "task_count", "triggers": ["TaskApproved"]},
    },
    {
        "code": "CHORE_CHAMPION",
        "name": "Chore Champion",
        "description": "Completed 50 tasks",
        "category": "Chores",
        "rarity": "Rare",
        "points": 50,
        "criteria_type": "CountThreshold",
        "config": {"count_target": 50, "measure_field": "task_count", "triggers": ["TaskApproved"]},
    },
    {
        "code": "TASK_MASTER",
        "name": "Task Master",
        "description": "Completed 100 tasks",
        "category": "Chores",
        "rarity": "Epic",
        "points": 100,
        "criteria_type": "CountThreshold",
        "config": {"count_target": 100, "measure_field": "task_count", "triggers": ["TaskApproved"]},
    },
    {
        "code": "PERFECT_RECORD",
        "name": "Perfect Record",
        "description": "Had 10 tasks approved in a row",
        "category": "Chores",
        "rarity": "Rare",
        "points": 40,
        "criteria_type": "StreakCount",
        "config": {"streak_target": 10, "measure_field": "approved_task_streak", "triggers": ["TaskApproved"]},
    },
    # streaks
    {
        "code": "STREAK_STARTER",
        "name": "Streak Starter",
        "description": "Saved for 2 weeks in a row",
        "category": "Streaks",
        "rarity": "Common",
        "points": 15,
        "criteria_type": "StreakCount",
        "config": {"streak_target": 2, "measure_field": "saving_streak", "triggers": ["StreakUpdated"]},
    },
    {
        "code": "CONSISTENCY_KING",
        "name": "Consistency King",
        "description": "Saved for 4 weeks in a row",
        "category": "Streaks",
        "rarity": "Uncommon",
        "points": 30,
        "criteria_type": "StreakCount",
        "config": {"streak_target": 4, "measure_field": "saving_streak", "triggers": ["StreakUpdated"]},
    },
    {
        "code": "STREAK_MASTER",
        "name": "Streak Master",
        "description": "Saved for 10 weeks in a row",
        "category": "Streaks",
        "rarity": "Rare",
        "points": 60,
        "criteria_type": "StreakCount",
        "config": {"streak_target": 10, "measure_field": "saving_streak", "triggers": ["StreakUpdated"]},
    },
    {
        "code": "UNSTOPPABLE",
        "name": "Unstoppable",
        "description": "Saved for 26 weeks in a row",
        "category": "Streaks",
        "rarity": "Epic",
        "points": 100,
        "criteria_type": "StreakCount",
        "config": {"streak_target": 26, "measure_field": "saving_streak", "triggers": ["StreakUpdated"]},
    },
    {
        "code": "LEGENDARY_STREAK",
        "name": "Legendary Streak",
        "description": "Saved for 52 weeks in a row",
        "category": "Streaks",
        "rarity": "Legendary",
        "points": 200,
        "criteria_type": "StreakCount",
        "config": {"streak_target": 52, "measure_field": "saving_streak", "triggers": ["StreakUpdated"]},
    },
    # milestones
    {
        "code": "FIRST_PURCHASE",
        "name": "First Purchase",
        "description": "Made your first transaction",
        "category": "Milestones",
        "rarity": "Common",
        "points": 5,
        "criteria_type": "SingleAction",
        "config": {"action_type": "first_transaction", "triggers": ["TransactionCreated"]},
    },
    {
        "code": "DOUBLE_DIGITS",
        "name": "Double Digits",
        "description": "Reached $10 balance",
        "category": "Milestones",
        "rarity": "Common",
        "points": 10,
        "criteria_type": "AmountThreshold",
        "config": {"amount_target": 10, "measure_field": "current_balance", "triggers": ["BalanceChanged"]},
    },
    {
        "code": "FIFTY_CLUB",
        "name": "Fifty Club",
        "description": "Reached $50 balance",
        "category": "Milestones",
        "rarity": "Uncommon",
        "points": 25,
        "criteria_type": "AmountThreshold",
        "config": {"amount_target": 50, "measure_field": "current_balance", "triggers": ["BalanceChanged"]},
    },
    {
        "code": "CENTURY_CLUB",
        "name": "Century Club",
        "description": "Reached $100 balance",
        "category": "Milestones",
        "rarity": "Rare",
        "points": 50,
        "criteria_type": "AmountThreshold",
        "config": {"amount_target": 100, "measure_field": "current_balance", "triggers": ["BalanceChanged"]},
    },
    {
        "code": "HIGH_ROLLER",
        "name": "High Roller",
        "description": "Reached $500 balance",
        "category": "Milestones",
        "rarity": "Epic",
        "points": 100,
        "criteria_type": "AmountThreshold",
        "config": {"amount_target": 500, "measure_field": "current_balance", "triggers": ["BalanceChanged"]},
    },
    # spending
    {
        "code": "BUDGET_AWARE",
        "name": "Budget Aware",
        "description": "Stayed under budget for a week",
        "category": "Spending",
        "rarity": "Common",
        "points": 15,
        "criteria_type": "StreakCount",
        "config": {"streak_target": 1, "measure_field": "budget_streak", "triggers": ["BudgetChecked"]},
    },
    {
        "code": "BUDGET_BOSS",
        "name": "Budget Boss",
        "description": "Stayed under budget for 4 weeks",
        "category": "Spending",
        "rarity": "Rare",
        "points": 50,
        "criteria_type": "StreakCount",
        "config": {"streak_target": 4, "measure_field": "budget_streak", "triggers": ["BudgetChecked"]},
    },
    {
        "code": "SMART_SPENDER",
        "name": "Smart Spender",
        "description": "Tracked 50 transactions",
        "category": "Spending",
        "rarity": "Uncommon",
        "points": 25,
        "criteria_type": "CountThreshold",
        "config": {"count_target": 50, "measure_field": "transaction_count", "triggers": ["TransactionCreated"]},
    },
    {
        "code": "TRANSACTION_TRACKER",
        "name": "Transaction Tracker",
        "description": "Tracked 200 transactions",
        "category": "Spending",
        "rarity": "Rare",
        "points": 50,
        "criteria_type": "CountThreshold",
        "config": {"count_target": 200, "measure_field": "transaction_count", "triggers": ["TransactionCreated"]},
    },
    # special
    {
        "code": "WELCOME",
        "name": "Welcome",
        "description": "Joined the app",
        "category": "Special",
        "rarity": "Common",
        "points": 5,
        "criteria_type": "SingleAction",
        "config": {"action_type": "account_created", "triggers": ["AccountCreated"]},
    },
    {
        "code": "BIRTHDAY_BONUS",
        "name": "Birthday Bonus",
        "description": "Received a gift on your birthday",
        "category": "Special",
        "rarity": "Uncommon",
        "points": 25,
        "criteria_type": "SingleAction",
        "config": {"action_type": "birthday_gift", "triggers": ["TransactionCreated"]},
        "secret": True,
    },
    {
        "code": "GENEROUS_HEART",
        "name": "Generous Heart",
        "description": "Gave money to a sibling",
        "category": "Special",
        "rarity": "Rare",
        "points": 40,
        "criteria_type": "SingleAction",
        "config": {"action_type": "sibling_transfer", "triggers": ["TransactionCreated"]},
    },
    {
        "code": "FAMILY_FIRST",
        "name": "Family First",
        "description": "Part of a family savings goal",
        "category": "Special",
        "rarity": "Rare",
        "points": 40,
        "criteria_type": "SingleAction",
        "config": {"action_type": "family_goal_participant", "triggers": ["GoalCreated"]},
    },
]

REWARDS = [
    {"name": "Cool Cat", "description": "A stylish cat avatar", "type": "Avatar",
     "value": "avatars/cool-cat.png", "preview_url": "/previews/cool-cat.png", "cost": 25},
    {"name": "Super Star", "description": "A shining star avatar", "type": "Avatar",
     "value": "avatars/super-star.png", "preview_url": "/previews/super-star.png", "cost": 50},
    {"name": "Piggy Pro", "description": "A professional piggy bank", "type": "Avatar",
     "value": "avatars/piggy-pro.png", "preview_url": "/previews/piggy-pro.png", "cost": 75},
    {"name": "Money Dragon", "description": "A dragon guarding treasure", "type": "Avatar",
     "value": "avatars/money-dragon.png", "preview_url": "/previews/money-dragon.png", "cost": 100},
    {"name": "Coin Collector", "description": "A coin collector character", "type": "Avatar",
     "value": "avatars/coin-collector.png", "preview_url": "/previews/coin-collector.png", "cost": 150},
    {"name": "Ocean Blue", "description": "A calming ocean theme", "type": "Theme",
     "value": "theme-ocean", "preview_url": "/previews/theme-ocean.png", "cost": 50},
    {"name": "Forest Green", "description": "A refreshing forest theme", "type": "Theme",
     "value": "theme-forest", "preview_url": "/previews/theme-forest.png", "cost": 50},
    {"name": "Sunset Orange", "description": "A warm sunset theme", "type": "Theme",
     "value": "theme-sunset", "preview_url": "/previews/theme-sunset.png", "cost": 75},
    {"name": "Galaxy Purple", "description": "A cosmic galaxy theme", "type": "Theme",
     "value": "theme-galaxy", "preview_url": "/previews/theme-galaxy.png", "cost": 100},
    {"name": "Golden Luxury", "description": "A premium gold theme", "type": "Theme",
     "value": "theme-gold", "preview_url": "/previews/theme-gold.png", "cost": 200},
    {"name": "Saver", "description": "The 'Saver' title", "type": "Title",
     "value": "Saver", "preview_url": None, "cost": 25},
    {"name": "Budget Master", "description": "The 'Budget Master' title", "type": "Title",
     "value": "Budget Master", "preview_url": None, "cost": 50},
    {"name": "Money Expert", "description": "The 'Money Expert' title", "type": "Title",
     "value": "Money Expert", "preview_url": None, "cost": 100},
    {"name": "Financial Wizard", "description": "The 'Financial Wizard' title", "type": "Title",
     "value": "Financial Wizard", "preview_url": None, "cost": 150},
    {"name": "Legendary Investor", "description": "The 'Legendary Investor' title", "type": "Title",
     "value": "Legendary Investor", "preview_url": None, "cost": 300},
]
