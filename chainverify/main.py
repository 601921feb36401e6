from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from chainverify.api.routes import router
from chainverify.api.admin_routes import router as admin_router
from chainverify.core import messages as msg
from chainverify.core.factory import build_engine, close_engine
from chainverify.observability.logging import log
from chainverify.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests install their own engine before startup
    owned = getattr(app.state, "engine", None) is None
    if owned:
        app.state.engine = await build_engine()
    try:
        yield
    finally:
        if owned:
            await close_engine(app.state.engine)
            app.state.engine = None


app = FastAPI(title="On-chain Role Verification API", lifespan=lifespan)

origins = [x.strip() for x in settings.CORS_ORIGINS.split(",") if x.strip()]
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(router)
app.include_router(admin_router)


@app.get("/")
def root():
    return {
        "status": "ok",
        "message": "Verification API is running. Use /health and POST /api/verification/*."
    }


@app.get("/health")
def health():
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Never leave the front-end without something to show the user.
# ---------------------------------------------------------------------------
@app.exception_handler(Exception)
async def universal_exception_handler(request: Request, exc: Exception):
    log(
        event="unhandled_exception",
        path=request.url.path,
        errorType=type(exc).__name__,
        error=str(exc)[:500],
    )
    return JSONResponse(
        status_code=500,
        content={"status": "error", "reply": msg.CONTACT_MODERATOR, "ephemeral": True},
    )
