from core.database import Base

from .users import (User, Creator, UserRole, CreatorTier)

from .catalog import (Service, CartItem)

from .bookings import (
    Booking,
    BookingStatus,
    BookingMessage,
    Dispute,
    DisputeStatus,
    Review
)

from .finance import (
    Payment,
    PaymentType,
    PaymentStatus,
    PlatformWallet,
    SubscriptionWallet,
    ReferralCreditAward,
    ReferralCashout,
    CashoutStatus
)

from .system import (AuditLog, Notification)

# Metadata centralizada para migraciones de Alembic
metadata = Base.metadata
