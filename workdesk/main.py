import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from .config import get_settings
from .migration_runner import run_migrations_once
from .routers import auth, projects, work

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)
app.add_middleware(SessionMiddleware, secret_key=settings.secret_key, session_cookie=settings.session_cookie)


@app.get("/")
async def root(request: Request):
    user = request.session.get("user")
    return JSONResponse({"app": settings.app_name, "authenticated": bool(user)})


@app.get("/healthz")
async def healthz():
    return JSONResponse({"status": "ok", "environment": settings.environment})


@app.on_event("startup")
async def ensure_schema() -> None:
    if not settings.run_migrations_on_startup:
        logger.info("Startup migrations disabled")
        return
    try:
        run_migrations_once()
    except Exception:  # pragma: no cover - startup failures should surface
        logger.exception("Database migration failed")
        raise


app.include_router(auth.router)
app.include_router(projects.router)
app.include_router(work.router)
