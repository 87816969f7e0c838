# taskup/main.py

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from dotenv import load_dotenv
import logging
import os

# ---------------- ENV ----------------
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), ".env"))

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("taskup")

app = FastAPI(title="TaskUp Backend")

# ---------------- CORS ----------------
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

frontend_origin = os.getenv("FRONTEND_ORIGIN")
if frontend_origin:
    origins.append(frontend_origin)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------- ERRORS ----------------
from taskup.errors import TaskUpError  # noqa: E402


@app.exception_handler(TaskUpError)
async def taskup_error_handler(request: Request, exc: TaskUpError):
    logger.warning(
        "request_failed",
        extra={"path": request.url.path, "status_code": exc.status_code, "error": exc.message},
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    message = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(status_code=422, content={"error": message or "Invalid request"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("unexpected_error", extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ---------------- DATABASE INIT ----------------
from taskup.database import Base, engine  # noqa: E402
from taskup.models import goal, notification, organization, points, task, user  # noqa: E402,F401

logger.info("Checking database models...")
Base.metadata.create_all(bind=engine)
logger.info("Database ready.")

# ---------------- ROUTERS ----------------
from taskup.auth.auth_router import router as auth_router  # noqa: E402
from taskup.organization.organization_router import router as organization_router  # noqa: E402
from taskup.task.task_router import router as task_router  # noqa: E402
from taskup.goal.goal_router import router as goal_router  # noqa: E402
from taskup.points.points_router import router as points_router  # noqa: E402
from taskup.notification.notification_router import router as notification_router  # noqa: E402

app.include_router(auth_router, prefix="/auth")
app.include_router(organization_router)
app.include_router(task_router)
app.include_router(goal_router)
app.include_router(points_router)
app.include_router(notification_router)


# ---------------- ROOT ----------------
@app.get("/")
def read_root():
    return {"message": "TaskUp backend running"}
