"""Runtime settings for the marketplace, read from the environment."""

import os
from decimal import Decimal

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

# Pricing
CURRENCY = os.getenv("MARKETPLACE_CURRENCY", "INR")
FREE_DELIVERY_THRESHOLD = Decimal(os.getenv("FREE_DELIVERY_THRESHOLD", "500"))
STANDARD_DELIVERY_CHARGE = Decimal(os.getenv("STANDARD_DELIVERY_CHARGE", "20"))
EXPRESS_DELIVERY_CHARGE = Decimal(os.getenv("EXPRESS_DELIVERY_CHARGE", "50"))
PLATFORM_FEE = Decimal(os.getenv("PLATFORM_FEE", "2"))
ESTIMATED_DELIVERY_DAYS = int(os.getenv("ESTIMATED_DELIVERY_DAYS", "3"))

# Returns
RETURN_WINDOW_DAYS = int(os.getenv("RETURN_WINDOW_DAYS", "7"))

# Delivery verification
OTP_LENGTH = int(os.getenv("OTP_LENGTH", "6"))
OTP_TTL_MINUTES = int(os.getenv("OTP_TTL_MINUTES", "10"))
OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "3"))
DELIVERY_QR_SECRET = os.getenv("DELIVERY_QR_SECRET", "dev-delivery-qr-secret")

# Dispatch
PROXIMITY_PAGE_SIZE = int(os.getenv("PROXIMITY_PAGE_SIZE", "10"))
PROXIMITY_DEFAULT_RADIUS_METERS = float(os.getenv("PROXIMITY_DEFAULT_RADIUS_METERS", "10000"))

# Notifications
NOTIFICATION_WORKERS = int(os.getenv("NOTIFICATION_WORKERS", "4"))
