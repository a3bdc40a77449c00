"""Database models used by the allowance tracker.

The models are defined with SQLModel (built on SQLAlchemy and Pydantic)
and cover families, users, child profiles, the transaction ledger,
savings goals, tasks, achievements, notifications and gifts.  Money is
stored as ``Decimal`` with two decimal places.  Relationships are not
declared; services query related rows explicitly so nothing lazy-loads
inside the async session.
"""

from typing import Optional
from datetime import datetime, date, time, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, UniqueConstraint

TWO_PLACES = Decimal("0.01")


def money(value) -> Decimal:
    """Normalize ``value`` to a two decimal place ``Decimal``."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def naive_utc(value: datetime | None) -> datetime | None:
    """Timestamps are stored as naive UTC; convert aware values to match."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def MoneyField(default: Decimal = Decimal("0"), **kwargs):
    return Field(default=default, max_digits=12, decimal_places=2, **kwargs)


# --- enumerations -----------------------------------------------------------


class TransactionType(str, Enum):
    CREDIT = "Credit"
    DEBIT = "Debit"


class TransactionCategory(str, Enum):
    # income
    ALLOWANCE = "Allowance"
    CHORES = "Chores"
    GIFT = "Gift"
    BONUS_REWARD = "BonusReward"
    TASK = "Task"
    OTHER_INCOME = "OtherIncome"
    # spending
    TOYS = "Toys"
    GAMES = "Games"
    BOOKS = "Books"
    CLOTHES = "Clothes"
    SNACKS = "Snacks"
    CANDY = "Candy"
    ELECTRONICS = "Electronics"
    ENTERTAINMENT = "Entertainment"
    SPORTS = "Sports"
    CRAFTS = "Crafts"
    OTHER_SPENDING = "OtherSpending"
    # saving
    SAVINGS = "Savings"
    CHARITY = "Charity"
    INVESTMENT = "Investment"


INCOME_CATEGORIES = {
    TransactionCategory.ALLOWANCE,
    TransactionCategory.CHORES,
    TransactionCategory.GIFT,
    TransactionCategory.BONUS_REWARD,
    TransactionCategory.TASK,
    TransactionCategory.OTHER_INCOME,
}
SAVING_CATEGORIES = {
    TransactionCategory.SAVINGS,
    TransactionCategory.CHARITY,
    TransactionCategory.INVESTMENT,
}


class DayOfWeek(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @classmethod
    def from_date(cls, day: date) -> "DayOfWeek":
        return list(cls)[day.weekday()]


class TransferType(str, Enum):
    NONE = "None"
    FIXED_AMOUNT = "FixedAmount"
    PERCENTAGE = "Percentage"


class AllowanceAdjustmentType(str, Enum):
    PAUSED = "Paused"
    RESUMED = "Resumed"
    AMOUNT_CHANGED = "AmountChanged"


class SavingsTransactionType(str, Enum):
    DEPOSIT = "Deposit"
    WITHDRAWAL = "Withdrawal"
    AUTO_TRANSFER = "AutoTransfer"


class GoalCategory(str, Enum):
    TOY = "Toy"
    GAME = "Game"
    ELECTRONICS = "Electronics"
    CLOTHING = "Clothing"
    EXPERIENCE = "Experience"
    SAVINGS = "Savings"
    CHARITY = "Charity"
    OTHER = "Other"


class GoalStatus(str, Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    PURCHASED = "Purchased"
    CANCELLED = "Cancelled"
    PAUSED = "Paused"


class ContributionType(str, Enum):
    CHILD_DEPOSIT = "ChildDeposit"
    AUTO_TRANSFER = "AutoTransfer"
    PARENT_MATCH = "ParentMatch"
    PARENT_GIFT = "ParentGift"
    CHALLENGE_BONUS = "ChallengeBonus"
    WITHDRAWAL = "Withdrawal"
    EXTERNAL_GIFT = "ExternalGift"


class MatchingType(str, Enum):
    RATIO_MATCH = "RatioMatch"
    PERCENTAGE_MATCH = "PercentageMatch"
    MILESTONE_BONUS = "MilestoneBonus"


class ChallengeStatus(str, Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


class TaskStatus(str, Enum):
    ACTIVE = "Active"
    ARCHIVED = "Archived"


class RecurrenceType(str, Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"


class CompletionStatus(str, Enum):
    PENDING_APPROVAL = "PendingApproval"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class BadgeCategory(str, Enum):
    SAVING = "Saving"
    SPENDING = "Spending"
    GOALS = "Goals"
    CHORES = "Chores"
    STREAKS = "Streaks"
    MILESTONES = "Milestones"
    SPECIAL = "Special"


class BadgeRarity(str, Enum):
    COMMON = "Common"
    UNCOMMON = "Uncommon"
    RARE = "Rare"
    EPIC = "Epic"
    LEGENDARY = "Legendary"


class CriteriaType(str, Enum):
    SINGLE_ACTION = "SingleAction"
    COUNT_THRESHOLD = "CountThreshold"
    AMOUNT_THRESHOLD = "AmountThreshold"
    STREAK_COUNT = "StreakCount"
    PERCENTAGE_TARGET = "PercentageTarget"
    GOAL_COMPLETION = "GoalCompletion"
    TIME_BASED_ACTION = "TimeBasedAction"
    COMPOUND = "Compound"


class BadgeTrigger(str, Enum):
    SAVINGS_DEPOSIT = "SavingsDeposit"
    GOAL_CREATED = "GoalCreated"
    GOAL_COMPLETED = "GoalCompleted"
    TASK_COMPLETED = "TaskCompleted"
    TASK_APPROVED = "TaskApproved"
    STREAK_UPDATED = "StreakUpdated"
    TRANSACTION_CREATED = "TransactionCreated"
    BALANCE_CHANGED = "BalanceChanged"
    BUDGET_CHECKED = "BudgetChecked"
    ACCOUNT_CREATED = "AccountCreated"


class RewardType(str, Enum):
    AVATAR = "Avatar"
    THEME = "Theme"
    TITLE = "Title"


class NotificationType(str, Enum):
    BALANCE_ALERT = "BalanceAlert"
    LOW_BALANCE_WARNING = "LowBalanceWarning"
    TRANSACTION_CREATED = "TransactionCreated"
    ALLOWANCE_DEPOSIT = "AllowanceDeposit"
    ALLOWANCE_PAUSED = "AllowancePaused"
    ALLOWANCE_RESUMED = "AllowanceResumed"
    GOAL_PROGRESS = "GoalProgress"
    GOAL_MILESTONE = "GoalMilestone"
    GOAL_COMPLETED = "GoalCompleted"
    PARENT_MATCH_ADDED = "ParentMatchAdded"
    TASK_ASSIGNED = "TaskAssigned"
    TASK_REMINDER = "TaskReminder"
    TASK_COMPLETED = "TaskCompleted"
    APPROVAL_REQUIRED = "ApprovalRequired"
    TASK_APPROVED = "TaskApproved"
    TASK_REJECTED = "TaskRejected"
    TASK_COMPLETION_PENDING_APPROVAL = "TaskCompletionPendingApproval"
    BUDGET_WARNING = "BudgetWarning"
    BUDGET_EXCEEDED = "BudgetExceeded"
    ACHIEVEMENT_UNLOCKED = "AchievementUnlocked"
    STREAK_UPDATE = "StreakUpdate"
    FAMILY_INVITE = "FamilyInvite"
    CHILD_ADDED = "ChildAdded"
    GIFT_RECEIVED = "GiftReceived"
    FAMILY_UPDATE = "FamilyUpdate"
    WEEKLY_SUMMARY = "WeeklySummary"
    MONTHLY_SUMMARY = "MonthlySummary"
    SYSTEM_ANNOUNCEMENT = "SystemAnnouncement"


class NotificationChannel(str, Enum):
    IN_APP = "InApp"
    PUSH = "Push"
    EMAIL = "Email"
    ALL = "All"


class NotificationStatus(str, Enum):
    PENDING = "Pending"
    SENT = "Sent"
    DELIVERED = "Delivered"
    FAILED = "Failed"


class DevicePlatform(str, Enum):
    IOS = "iOS"
    ANDROID = "Android"
    WEB = "Web"


class GiftLinkVisibility(str, Enum):
    MINIMAL = "Minimal"
    WITH_GOALS = "WithGoals"
    FULL = "Full"


class GiftOccasion(str, Enum):
    BIRTHDAY = "Birthday"
    CHRISTMAS = "Christmas"
    HANUKKAH = "Hanukkah"
    EID = "Eid"
    EASTER = "Easter"
    GRADUATION = "Graduation"
    GOOD_GRADES = "GoodGrades"
    JUST_BECAUSE = "JustBecause"
    OTHER = "Other"


class GiftStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    EXPIRED = "Expired"


class BudgetPeriod(str, Enum):
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"


class InviteStatus(str, Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    EXPIRED = "Expired"
    CANCELLED = "Cancelled"


# --- families and accounts --------------------------------------------------


class Family(SQLModel, table=True):
    """Tenant boundary grouping parents and children."""

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    owner_id: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)


class User(SQLModel, table=True):
    """Login account for a parent or a child."""

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    first_name: str
    last_name: str = ""
    password_hash: str
    role: str  # 'parent' or 'child'
    family_id: Optional[int] = Field(default=None, foreign_key="family.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Child(SQLModel, table=True):
    """Per-child money profile linked 1:1 to a child user."""

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", unique=True)
    family_id: int = Field(foreign_key="family.id", index=True)
    first_name: str
    current_balance: Decimal = MoneyField()
    weekly_allowance: Decimal = MoneyField()
    last_allowance_date: Optional[datetime] = None
    allowance_day: Optional[DayOfWeek] = None  # None means rolling 7 days
    allowance_paused: bool = False
    allowance_paused_reason: Optional[str] = None
    allow_debt: bool = False

    savings_account_enabled: bool = False
    savings_balance: Decimal = MoneyField()
    savings_transfer_type: TransferType = TransferType.NONE
    savings_transfer_amount: Decimal = MoneyField()
    savings_transfer_percentage: int = 0
    savings_balance_visible_to_child: bool = True

    total_points: int = 0
    available_points: int = 0
    equipped_avatar_url: Optional[str] = None
    equipped_theme: Optional[str] = None
    equipped_title: Optional[str] = None
    saving_streak: int = 0
    last_saving_date: Optional[date] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)


class ParentInvite(SQLModel, table=True):
    """Invitation for another parent to join a family."""

    id: Optional[int] = Field(default=None, primary_key=True)
    invited_email: str = Field(index=True)
    first_name: str
    last_name: str = ""
    family_id: int = Field(foreign_key="family.id")
    invited_by_id: int = Field(foreign_key="user.id")
    token: str = Field(unique=True, index=True)
    is_existing_user: bool = False
    status: InviteStatus = InviteStatus.PENDING
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


# --- ledger -----------------------------------------------------------------


class Transaction(SQLModel, table=True):
    """Immutable ledger entry with a balance snapshot."""

    id: Optional[int] = Field(default=None, primary_key=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    amount: Decimal = MoneyField()
    type: TransactionType
    category: TransactionCategory
    description: str
    notes: Optional[str] = None
    balance_after: Decimal = MoneyField()
    created_by_id: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)


class AllowanceAdjustment(SQLModel, table=True):
    """Audit row for allowance pauses, resumes and amount changes."""

    id: Optional[int] = Field(default=None, primary_key=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    adjustment_type: AllowanceAdjustmentType
    old_amount: Optional[Decimal] = Field(
        default=None, max_digits=12, decimal_places=2
    )
    new_amount: Optional[Decimal] = Field(
        default=None, max_digits=12, decimal_places=2
    )
    reason: Optional[str] = None
    adjusted_by_id: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)


class CategoryBudget(SQLModel, table=True):
    """Spending limit for one category over a week or month."""

    __table_args__ = (UniqueConstraint("child_id", "category"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    category: TransactionCategory
    limit_amount: Decimal = MoneyField()
    period: BudgetPeriod = BudgetPeriod.WEEKLY
    alert_threshold_percent: int = 80
    enforce_limit: bool = False
    created_by_id: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class SavingsTransaction(SQLModel, table=True):
    """Movement between a child's spending balance and savings account."""

    id: Optional[int] = Field(default=None, primary_key=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    amount: Decimal = MoneyField()
    type: SavingsTransactionType
    description: str
    balance_after: Decimal = MoneyField()
    is_automatic: bool = False
    source_allowance_transaction_id: Optional[int] = Field(
        default=None, foreign_key="transaction.id"
    )
    created_by_id: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)


# --- savings goals ----------------------------------------------------------


class SavingsGoal(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    name: str
    description: Optional[str] = None
    target_amount: Decimal = MoneyField()
    current_amount: Decimal = MoneyField()
    image_url: Optional[str] = None
    product_url: Optional[str] = None
    category: GoalCategory = GoalCategory.OTHER
    status: GoalStatus = GoalStatus.ACTIVE
    priority: int = 1
    auto_transfer_type: TransferType = TransferType.NONE
    auto_transfer_amount: Decimal = MoneyField()
    auto_transfer_percentage: int = 0
    target_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    purchased_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def progress_percentage(self) -> float:
        if not self.target_amount:
            return 0.0
        pct = Decimal(self.current_amount) / Decimal(self.target_amount) * 100
        return float(min(pct, Decimal(100)).quantize(TWO_PLACES))


class GoalMilestone(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    goal_id: int = Field(foreign_key="savingsgoal.id", index=True)
    percent_complete: int
    target_amount: Decimal = MoneyField()
    is_achieved: bool = False
    achieved_at: Optional[datetime] = None
    celebration_message: Optional[str] = None
    bonus_amount: Decimal = MoneyField()


class ParentMatchingRule(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    goal_id: int = Field(foreign_key="savingsgoal.id", unique=True)
    matching_type: MatchingType
    match_ratio: Decimal = Field(default=Decimal("1"), max_digits=10, decimal_places=4)
    max_match_amount: Optional[Decimal] = Field(
        default=None, max_digits=12, decimal_places=2
    )
    total_matched_amount: Decimal = MoneyField()
    is_active: bool = True
    expires_at: Optional[datetime] = None
    created_by_id: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)


class GoalChallenge(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    goal_id: int = Field(foreign_key="savingsgoal.id", index=True)
    target_amount: Decimal = MoneyField()
    start_date: datetime = Field(default_factory=datetime.utcnow)
    end_date: datetime
    bonus_amount: Decimal = MoneyField()
    status: ChallengeStatus = ChallengeStatus.ACTIVE
    completed_at: Optional[datetime] = None
    created_by_id: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)


class SavingsContribution(SQLModel, table=True):
    """Ledger of money moving in or out of a goal."""

    id: Optional[int] = Field(default=None, primary_key=True)
    goal_id: int = Field(foreign_key="savingsgoal.id", index=True)
    child_id: int = Field(foreign_key="child.id")
    amount: Decimal = MoneyField()  # negative for withdrawals
    type: ContributionType
    goal_balance_after: Decimal = MoneyField()
    description: Optional[str] = None
    parent_match_id: Optional[int] = Field(
        default=None, foreign_key="savingscontribution.id"
    )
    created_by_id: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)


class WishListItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    name: str
    price: Decimal = MoneyField()
    url: Optional[str] = None
    notes: Optional[str] = None
    is_purchased: bool = False
    purchased_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


# --- tasks ------------------------------------------------------------------


class ChoreTask(SQLModel, table=True):
    """Chore assigned by a parent that pays out on approval."""

    id: Optional[int] = Field(default=None, primary_key=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    family_id: int = Field(foreign_key="family.id", index=True)
    title: str
    description: Optional[str] = None
    reward_amount: Decimal = MoneyField()
    status: TaskStatus = TaskStatus.ACTIVE
    is_recurring: bool = False
    recurrence_type: Optional[RecurrenceType] = None
    recurrence_day: Optional[DayOfWeek] = None
    recurrence_day_of_month: Optional[int] = None
    created_by_id: int = Field(foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    archived_at: Optional[datetime] = None


class TaskCompletion(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(foreign_key="choretask.id", index=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    completed_at: datetime = Field(default_factory=datetime.utcnow)
    notes: Optional[str] = None
    photo_url: Optional[str] = None
    status: CompletionStatus = CompletionStatus.PENDING_APPROVAL
    approved_by_id: Optional[int] = Field(default=None, foreign_key="user.id")
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    transaction_id: Optional[int] = Field(default=None, foreign_key="transaction.id")


# --- achievements -----------------------------------------------------------


class Badge(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(unique=True, index=True)
    name: str
    description: str
    icon_url: str = ""
    category: BadgeCategory
    rarity: BadgeRarity = BadgeRarity.COMMON
    points_value: int = 10
    criteria_type: CriteriaType
    criteria_config: dict = Field(sa_column=Column(JSON), default_factory=dict)
    is_secret: bool = False
    is_active: bool = True
    sort_order: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ChildBadge(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("child_id", "badge_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    badge_id: int = Field(foreign_key="badge.id")
    earned_at: datetime = Field(default_factory=datetime.utcnow)
    is_displayed: bool = True
    is_new: bool = True
    earned_context: Optional[str] = None


class BadgeProgress(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("child_id", "badge_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    badge_id: int = Field(foreign_key="badge.id")
    current_progress: int = 0
    target_progress: int = 10
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Reward(SQLModel, table=True):
    """Cosmetic item children buy with badge points."""

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: str = ""
    type: RewardType
    value: str
    preview_url: Optional[str] = None
    points_cost: int
    is_active: bool = True
    sort_order: int = 0


class ChildReward(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("child_id", "reward_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    reward_id: int = Field(foreign_key="reward.id")
    unlocked_at: datetime = Field(default_factory=datetime.utcnow)
    is_equipped: bool = False


# --- notifications ----------------------------------------------------------


class Notification(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    type: NotificationType
    title: str
    body: str
    data: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    is_read: bool = False
    read_at: Optional[datetime] = None
    status: NotificationStatus = NotificationStatus.PENDING
    channel: NotificationChannel = NotificationChannel.ALL
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    expires_at: Optional[datetime] = None
    related_entity_id: Optional[int] = None
    related_entity_type: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class NotificationPreference(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("user_id", "notification_type"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    notification_type: NotificationType
    in_app_enabled: bool = True
    push_enabled: bool = True
    email_enabled: bool = False
    quiet_hours_enabled: bool = False
    quiet_hours_start: Optional[time] = None
    quiet_hours_end: Optional[time] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class DeviceToken(SQLModel, table=True):
    """Push notification registration for one device."""

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    token: str = Field(index=True)
    platform: DevicePlatform
    device_name: Optional[str] = None
    app_version: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_used_at: Optional[datetime] = None
    deactivated_at: Optional[datetime] = None


# --- gifts ------------------------------------------------------------------


class GiftLink(SQLModel, table=True):
    """Shareable link letting relatives send money to a child."""

    id: Optional[int] = Field(default=None, primary_key=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    family_id: int = Field(foreign_key="family.id", index=True)
    created_by_id: int = Field(foreign_key="user.id")
    token: str = Field(unique=True, index=True)
    name: str
    description: Optional[str] = None
    visibility: GiftLinkVisibility = GiftLinkVisibility.MINIMAL
    is_active: bool = True
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = None
    use_count: int = 0
    min_amount: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    max_amount: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    default_occasion: Optional[GiftOccasion] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Gift(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    gift_link_id: int = Field(foreign_key="giftlink.id", index=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    giver_name: str
    giver_email: Optional[str] = None
    giver_relationship: Optional[str] = None
    amount: Decimal = MoneyField()
    occasion: GiftOccasion = GiftOccasion.JUST_BECAUSE
    custom_occasion: Optional[str] = None
    message: Optional[str] = None
    status: GiftStatus = GiftStatus.PENDING
    rejection_reason: Optional[str] = None
    processed_by_id: Optional[int] = Field(default=None, foreign_key="user.id")
    processed_at: Optional[datetime] = None
    allocate_to_goal_id: Optional[int] = Field(
        default=None, foreign_key="savingsgoal.id"
    )
    savings_percentage: Optional[int] = None
    transaction_id: Optional[int] = Field(default=None, foreign_key="transaction.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ThankYouNote(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    gift_id: int = Field(foreign_key="gift.id", unique=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    message: str
    image_url: Optional[str] = None
    is_sent: bool = False
    sent_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
