import logging
import os
import subprocess
from datetime import datetime

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ladder.database import init_db
from ladder.errors import LadderError
from ladder.routes import (
    activity,
    auth,
    availability,
    cron,
    ladders,
    matches,
    partner,
    profile,
    scores,
    sms,
    teams,
    weather,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

APP_NAME = "Tennis Ladder API"

app = FastAPI(title=APP_NAME)


# Get build info
def get_build_info():
    """Get git commit hash or build timestamp"""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=os.path.dirname(os.path.dirname(__file__)),
            capture_output=True,
            text=True,
            timeout=2,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (OSError, subprocess.SubprocessError):
        pass

    # Fallback to build timestamp
    return datetime.now().strftime("%Y%m%d-%H%M%S")


BUILD_HASH = get_build_info()

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error rendering: every failure is {"error": message, ...}
# ---------------------------------------------------------------------------


@app.exception_handler(LadderError)
async def ladder_error_handler(request: Request, exc: LadderError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()]
    return JSONResponse(status_code=400, content={"error": "bad request", "details": details})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Include routers
app.include_router(auth.router, prefix="/api", tags=["auth"])
app.include_router(availability.router, prefix="/api", tags=["availability"])
app.include_router(teams.router, prefix="/api", tags=["teams"])
app.include_router(matches.router, prefix="/api", tags=["matches"])
app.include_router(scores.router, prefix="/api", tags=["scores"])
app.include_router(ladders.router, prefix="/api", tags=["ladders"])
app.include_router(partner.router, prefix="/api", tags=["partner"])
app.include_router(profile.router, prefix="/api", tags=["profile"])
app.include_router(activity.router, prefix="/api", tags=["activity"])
app.include_router(weather.router, prefix="/api", tags=["weather"])

# Cron jobs check CRON_SECRET themselves
app.include_router(cron.router, prefix="/api", tags=["cron"])

# SMS opt-in is reached from email links, no session
app.include_router(sms.router, prefix="/api", tags=["sms"])


@app.on_event("startup")
def on_startup():
    init_db()
    logger.info(f"{APP_NAME} started (build {BUILD_HASH}, {len(app.routes)} routes)")


@app.get("/api/health")
def health_check():
    """Diagnostic endpoint to verify which code is running"""
    return {"app_name": APP_NAME, "build_hash": BUILD_HASH, "status": "healthy"}
