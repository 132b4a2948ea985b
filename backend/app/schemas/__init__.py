from app.schemas.user import UserCreate, UserResponse, UserLogin, Token
from app.schemas.booking import (
    BookingCreate, BookingUpdate, BookingResponse, BookingListResponse,
    DeclineRequest, PriceAdjustmentRequest, PriceRejectionRequest, PriceAdjustmentResponse,
)
from app.schemas.payment import (
    PaymentIntentCreate, PaymentIntentResponse, PaymentVerifyRequest,
    PaymentVerifyResponse, PaymentResponse, PaymentListResponse,
)
from app.schemas.notification import NotificationResponse, NotificationListResponse

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "BookingCreate", "BookingUpdate", "BookingResponse", "BookingListResponse",
    "DeclineRequest", "PriceAdjustmentRequest", "PriceRejectionRequest", "PriceAdjustmentResponse",
    "PaymentIntentCreate", "PaymentIntentResponse", "PaymentVerifyRequest",
    "PaymentVerifyResponse", "PaymentResponse", "PaymentListResponse",
    "NotificationResponse", "NotificationListResponse",
]
