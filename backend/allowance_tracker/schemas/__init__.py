"""Convenience imports for all schema classes used by the API."""

from .user import (
    ParentRegister,
    UserLogin,
    UserResponse,
    UserMeResponse,
    TokenResponse,
    PasswordChange,
)
from .family import (
    FamilyRead,
    FamilyMember,
    OwnershipTransfer,
    InviteCreate,
    InviteRead,
    InviteAcceptNew,
    InviteAcceptExisting,
)
from .child import ChildCreate, ChildRead, ChildSettingsUpdate
from .transaction import (
    TransactionCreate,
    TransactionRead,
    BalanceRead,
    CategorySpending,
    BudgetSet,
    BudgetRead,
    BudgetStatusRead,
    BudgetCheckRead,
)
from .allowance import (
    AllowancePause,
    AllowanceAmountUpdate,
    AllowanceAdjustmentRead,
    AllowanceRunResult,
)
from .savings import SavingsConfig, SavingsAmount, SavingsTransactionRead, SavingsSummary
from .goal import (
    GoalCreate,
    GoalUpdate,
    GoalRead,
    GoalDetail,
    MilestoneRead,
    ContributionCreate,
    WithdrawCreate,
    ContributionRead,
    GoalProgressEvent,
    MatchingRuleCreate,
    MatchingRuleUpdate,
    MatchingRuleRead,
    ChallengeCreate,
    ChallengeRead,
)
from .achievement import (
    BadgeRead,
    ChildBadgeRead,
    BadgeProgressRead,
    AchievementSummary,
    BadgeDisplayUpdate,
    BadgesSeen,
    PointsRead,
    RewardRead,
    ChildRewardRead,
)
from .task import (
    TaskCreate,
    TaskUpdate,
    TaskRead,
    TaskComplete,
    CompletionReview,
    CompletionRead,
    TaskStatistics,
)
from .notification import (
    NotificationRead,
    NotificationList,
    MarkRead,
    PreferenceItem,
    PreferencesRead,
    PreferencesUpdate,
    QuietHoursUpdate,
    DeviceRegister,
    DeviceRead,
)
from .gift import (
    GiftLinkCreate,
    GiftLinkUpdate,
    GiftLinkRead,
    GiftLinkStats,
    GiftPortalData,
    GiftSubmit,
    GiftSubmissionResult,
    GiftApprove,
    GiftReject,
    GiftRead,
    ThankYouNoteCreate,
    ThankYouNoteUpdate,
    ThankYouNoteRead,
    PendingThankYou,
)
from .analytics import (
    BalancePoint,
    IncomeSpending,
    SpendingTrend,
    MonthlyComparison,
)
from .wishlist import WishListItemCreate, WishListItemUpdate, WishListItemRead
