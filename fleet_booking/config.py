import os
from datetime import timedelta


SQLALCHEMY_DATABASE_URL = os.getenv("FLEET_DATABASE_URL", "sqlite:///./data/fleet_booking.db")

# JWT configuration
SECRET_KEY = os.getenv("FLEET_SECRET_KEY", "fleet-secret-key-1234567890")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("FLEET_TOKEN_EXPIRE_MINUTES", "30"))

MIN_BOOKING_DURATION = timedelta(hours=1)

# Backstop sweep for bookings whose interval elapsed without a transition
RECONCILE_INTERVAL_SECONDS = int(os.getenv("FLEET_RECONCILE_INTERVAL_SECONDS", "60"))
ENABLE_SCHEDULER = os.getenv("FLEET_ENABLE_SCHEDULER", "1") == "1"

LOG_LEVEL = os.getenv("FLEET_LOG_LEVEL", "DEBUG")
