from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded

from .config import settings
from .database import Base, engine, SessionLocal
from .logging_config import configure_logging
from .routers import users, venues, facilities, bookings, feedback, admin
from .error_handlers import register_exception_handlers, error_body
from .seed import seed_demo_venues

configure_logging()

# -----------------------------------------
# Create DB tables (+ demo reference data)
# -----------------------------------------
Base.metadata.create_all(bind=engine)

if settings.SEED_DEMO_DATA:
    with SessionLocal() as db:
        seed_demo_venues(db)

# -----------------------------------------
# Rate Limiter
# -----------------------------------------
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=settings.RATE_LIMIT_ENABLED,
)

app = FastAPI(
    title=settings.APP_TITLE,
    version="0.1.0",
    description="Facility booking with venues, bookings, feedback and maintenance tickets.",
)

# Attach limiter to app and add middleware
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# -----------------------------------------
# Global exception handlers
# -----------------------------------------
register_exception_handlers(app)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content=error_body(request, "too_many_requests", "Rate limit exceeded. Please try again later."),
    )


# -----------------------------------------
# Routers (normal + versioned /api/v1)
# -----------------------------------------
ROUTERS = (users, venues, facilities, bookings, feedback, admin)

for module in ROUTERS:
    app.include_router(module.router)

for module in ROUTERS:
    app.include_router(module.router, prefix="/api/v1")


@app.get("/health", tags=["health"])
def health_check():
    return {"status": "ok"}
