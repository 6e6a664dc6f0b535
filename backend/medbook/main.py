from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from sqlalchemy import text

from medbook.config.settings import settings
from medbook.core.errors import register_error_handlers
from medbook.core.middleware import verify_token_middleware
from medbook.db.base import get_engine
from medbook.db.base import get_session_factory
from medbook.db.session import set_global_session_factory

# -------------------------------------------------------------------------------------
# Logging
# -------------------------------------------------------------------------------------
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application start-up & shutdown hooks."""
    logger.info("Application startup …")

    # Tests install their own session factory before startup
    engine = None
    if getattr(app.state, "session_factory", None) is None:
        try:
            logger.info("Initializing Database Engine...")
            engine = await get_engine(str(settings.database_url), pool_pre_ping=True)
            app.state.engine = engine
            session_factory = await get_session_factory(engine)
            app.state.session_factory = session_factory
            set_global_session_factory(session_factory)
            logger.info("DB session factory ready (globally accessible).")
        except Exception as e:
            logger.critical(f"CRITICAL ERROR DURING DATABASE INITIALIZATION: {e}", exc_info=True)
            if engine:
                await engine.dispose()
            raise

    logger.info(
        f"Booking rules: conflict_mode={settings.conflict_mode}, "
        f"strict_status_transitions={settings.strict_status_transitions}, "
        f"conceal_unowned_appointments={settings.conceal_unowned_appointments}"
    )

    yield

    logger.info("Application shutdown …")
    if engine:
        try:
            await engine.dispose()
            logger.info("DB engine disposed")
        except Exception:
            logger.exception("Error disposing DB engine")
    logger.info("Shutdown complete")


# -------------------------------------------------------------------------------------
# FastAPI application instance
# -------------------------------------------------------------------------------------
app = FastAPI(title="MedBook Appointment API", lifespan=lifespan)

# CORS -------------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(o) for o in settings.cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.middleware("http")(verify_token_middleware)
register_error_handlers(app)


# ----------------------------------------------------------------- health‑check -----
@app.get("/health")
async def health_check(request: Request):
    database = "ok"
    try:
        async with request.app.state.session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check database ping failed: {e}")
        database = "unavailable"

    status_code = 200 if database == "ok" else 503
    return JSONResponse(
        status_code=status_code,
        content={"status": "ok" if database == "ok" else "degraded", "database": database},
    )


# ------------------------------------------------------------------- routes ---------
from medbook.routes.auth.router import router as auth_router  # noqa: E402
from medbook.routes.appointment.router import router as appointment_router  # noqa: E402
from medbook.routes.doctor.router import router as doctor_router  # noqa: E402

app.include_router(auth_router)
app.include_router(appointment_router)
app.include_router(doctor_router)
