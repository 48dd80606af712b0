from pybreaker import CircuitBreaker
from sqlalchemy.exc import IntegrityError

from .config import settings

# Guards request-path writes to the booking store.
# Constraint violations are caller errors, not store outages.
store_circuit_breaker = CircuitBreaker(
    fail_max=settings.STORE_BREAKER_FAIL_MAX,
    reset_timeout=settings.STORE_BREAKER_RESET_TIMEOUT,
    exclude=[IntegrityError],
    name="booking_store_breaker",
)
