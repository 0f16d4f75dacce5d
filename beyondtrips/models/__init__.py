# Importing every model registers it on Base.metadata (used by Alembic and tests)
from beyondtrips.models.notification import (  # noqa: F401
    AdminNotification,
    DriverNotification,
    NotificationPriority,
    SideEffectTask,
    TaskStatus,
)
from beyondtrips.models.pickup import SCANNABLE_STATUSES, MagazinePickup, PickupStatus  # noqa: F401
from beyondtrips.models.rating import DriverRating, RiderScan  # noqa: F401
from beyondtrips.models.reward import AwardStatus, BTLCoinAward, DriverEarning  # noqa: F401
from beyondtrips.models.user import Magazine, User, UserRole  # noqa: F401
from beyondtrips.models.withdrawal import (  # noqa: F401
    RESERVING_STATUSES,
    DriverWithdrawal,
    WithdrawalStatus,
)
