# backend/booking_workflow/main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.errors import InvalidSelectionError, SessionClosedError, StepTransitionError, ValidationError
from .core.logging import setup_logging
from .routers.workflow import router as workflow_router
from .services.providers import close_provider
from .services.registry import registry

app = FastAPI(title="Booking Workflow", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_origin_regex=r"^https://.*\.vercel\.app$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _startup():
    setup_logging()


@app.on_event("shutdown")
async def _shutdown():
    registry.clear()
    await close_provider()


# === Error mapping ===

@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "errors": exc.errors, "first_error": exc.first_error_path},
    )


@app.exception_handler(InvalidSelectionError)
async def _invalid_selection(request: Request, exc: InvalidSelectionError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(StepTransitionError)
async def _step_transition(request: Request, exc: StepTransitionError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(SessionClosedError)
async def _session_closed(request: Request, exc: SessionClosedError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# === Routers ===
app.include_router(workflow_router)   # /api/workflows/...


@app.get("/health")
def health():
    return {"ok": True}
