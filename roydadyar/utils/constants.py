"""Constants and default values."""

from dataclasses import dataclass, field


# Notification channels
EMAIL = "EMAIL"
SMS = "SMS"
WHATSAPP = "WHATSAPP"
ALL_CHANNELS = (EMAIL, SMS, WHATSAPP)

# Subscription tiers
FREE = "FREE"
PREMIUM = "PREMIUM"
BUSINESS = "BUSINESS"
PAID_TIERS = (PREMIUM, BUSINESS)

EVENT_TYPES = ("BIRTHDAY", "INSURANCE", "CONTRACT", "CHECK", "CUSTOM")


@dataclass
class Plan:
    """A subscription plan as shown on the pricing page."""

    name: str
    price: int  # Rials per month
    max_events: int  # -1 means unlimited
    reminder_methods: tuple[str, ...]
    features: list[str] = field(default_factory=list)


PLANS = {
    FREE: Plan(
        name="Free",
        price=0,
        max_events=3,
        reminder_methods=(EMAIL,),
        features=["Up to 3 events", "Email reminders", "Basic support"],
    ),
    PREMIUM: Plan(
        name="Premium",
        price=49000,
        max_events=-1,
        reminder_methods=ALL_CHANNELS,
        features=[
            "Unlimited events",
            "Email reminders",
            "SMS reminders",
            "WhatsApp reminders",
            "Priority support",
        ],
    ),
    BUSINESS: Plan(
        name="Business",
        price=149000,
        max_events=-1,
        reminder_methods=ALL_CHANNELS,
        features=[
            "Everything in Premium",
            "Team management",
            "Shared calendar",
            "Advanced reports",
            "API access",
        ],
    ),
}

# Limits
FREE_EVENT_LIMIT = PLANS[FREE].max_events
SUBSCRIPTION_MONTHS = 1

# Reminder defaults used when the caller does not choose
DEFAULT_REMINDER_DAYS = [1, 7]
DEFAULT_REMINDER_METHODS = [EMAIL]

# Scheduler defaults
DEFAULT_TIMEZONE = "Asia/Tehran"
DEFAULT_DAILY_HOUR = 9
FREQUENT_CHECK_HOURS = "*/6"

# Payment provider
ZARINPAL_REQUEST_URL = "https://api.zarinpal.com/pg/v4/payment/request.json"
ZARINPAL_VERIFY_URL = "https://api.zarinpal.com/pg/v4/payment/verify.json"
ZARINPAL_START_PAY_URL = "https://www.zarinpal.com/pg/StartPay/"
PAYMENT_OK = 100
PAYMENT_ALREADY_VERIFIED = 101
ACCEPTED_VERIFY_CODES = (PAYMENT_OK, PAYMENT_ALREADY_VERIFIED)
CALLBACK_STATUS_OK = "OK"

PAYMENT_STATUS_MESSAGES = {
    100: "Transaction completed successfully",
    101: "Transaction was already verified",
    -9: "Validation error",
    -10: "Terminal is not active",
    -11: "Too many attempts in a short period",
    -12: "Identifier is not acceptable",
    -21: "No financial operation defined for this transaction",
    -22: "Transaction failed",
    -33: "Transaction amount does not match the paid amount",
    -34: "Transaction split limit exceeded",
    -40: "Access to the requested method is not allowed",
    -41: "Additional data is invalid",
    -42: "Payment identifier lifetime must be between 30 minutes and 45 days",
    -54: "Request not found",
}

# SMS gateway (MelliPayamak REST)
SMS_GATEWAY_URL = "https://rest.payamak-panel.com/api/SendSMS/SendSMS"
SMS_SUCCESS_STATUS = 1

# Outbound HTTP timeout in seconds
HTTP_TIMEOUT = 15.0

APP_NAME = "Roydad Yar"
DEFAULT_APP_URL = "http://localhost:8080"
