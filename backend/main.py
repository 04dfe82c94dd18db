import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from bson import ObjectId
from bson.errors import BSONError
from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from categories import backfill_categories
from config import Settings
from database import TaskStore, get_store
from logging_setup import setup_logging
from schemas import CategoryMove, Envelope, TaskIn, TaskUpdate, UserIn, coerce_date, to_document

logger = logging.getLogger(__name__)

STORE_ERRORS = (PyMongoError, BSONError)

SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self';base-uri 'self';font-src 'self' https: data:;"
        "form-action 'self';frame-ancestors 'self';img-src 'self' data:;"
        "object-src 'none';script-src 'self';script-src-attr 'none';"
        "style-src 'self' https: 'unsafe-inline';upgrade-insecure-requests"
    ),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


def envelope(message: str, data=None, status_code: int = 200, type_: Optional[str] = None) -> JSONResponse:
    body = Envelope(success=True, error=False, message=message, data=data, type=type_)
    content = body.model_dump(exclude={"type"} if type_ is None else None)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(content, custom_encoder={ObjectId: str}),
    )


def error_envelope(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=Envelope(success=False, error=True, message=message).model_dump(exclude={"data", "type"}),
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level)
        app.state.store = await TaskStore.open(settings)
        try:
            yield
        finally:
            app.state.store.close()
            logger.info("MongoDB client closed")

    app = FastAPI(title="Task Manager API", lifespan=lifespan)
    app.state.settings = settings

    @app.middleware("http")
    async def fault_boundary(request: Request, call_next):
        # Registered first: runs inside CORS, security headers and the request log
        try:
            return await call_next(request)
        except Exception:
            logger.exception("unhandled error on %s %s", request.method, request.url.path)
            return error_envelope("Internal server error", 500)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - start) * 1000
        logger.info("%s %s %d %.3f ms", request.method, request.url.path, response.status_code, elapsed)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return error_envelope(str(exc.detail), exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return error_envelope("Invalid request", 422)

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "Task manager homepage"

    @app.post("/auth/login")
    async def login(user: UserIn, store: TaskStore = Depends(get_store)):
        try:
            existing = await store.find_user_by_email(user.email)
            if existing:
                return envelope("User added successfully", existing, 200, "existing")
            result = await store.insert_user(to_document(user))
        except STORE_ERRORS:
            logger.exception("login failed for %s", user.email)
            raise HTTPException(status_code=500, detail="Failed to login user")
        return envelope("User added successfully", result, 201, "new")

    @app.post("/add-task")
    async def add_task(task: TaskIn, store: TaskStore = Depends(get_store)):
        doc = to_document(task)
        doc["timestamp"] = coerce_date(doc.get("timestamp"))
        try:
            result = await store.insert_task(doc)
        except STORE_ERRORS:
            logger.exception("failed to add task")
            raise HTTPException(status_code=500, detail="Failed to add task")
        return envelope("Task added successfully", result, 201)

    @app.get("/tasks/{email}")
    async def list_tasks(email: str, store: TaskStore = Depends(get_store)):
        logger.debug("listing tasks for %s", email)
        try:
            groups = await store.tasks_by_category(email)
        except STORE_ERRORS:
            logger.exception("failed to retrieve tasks for %s", email)
            raise HTTPException(status_code=500, detail="Failed to retrieve tasks")
        return envelope("Tasks retrieved successfully", backfill_categories(groups))

    @app.delete("/tasks/delete/{task_id}")
    async def delete_task(task_id: str, store: TaskStore = Depends(get_store)):
        try:
            result = await store.delete_task(task_id)
        except STORE_ERRORS:
            logger.exception("failed to delete task %s", task_id)
            raise HTTPException(status_code=500, detail="Failed to delete task")
        return envelope("Task deleted successfully", result)

    @app.put("/tasks/update/{task_id}")
    async def update_task(
        task_id: str,
        task: Optional[TaskUpdate] = Body(default=None),
        store: TaskStore = Depends(get_store),
    ):
        if task is None or not task_id:
            raise HTTPException(status_code=404, detail="task not found")
        fields = to_document(task)
        # _id is immutable in Mongo
        fields.pop("_id", None)
        fields["modified"] = coerce_date(fields.get("modified"))
        try:
            result = await store.update_task(task_id, fields)
        except STORE_ERRORS:
            logger.exception("failed to update task %s", task_id)
            raise HTTPException(status_code=500, detail="Failed to update task")
        return envelope("Successfully updated the task", result, 201)

    @app.put("/tasks/dnd/{task_id}")
    async def move_task(
        task_id: str,
        task: Optional[CategoryMove] = Body(default=None),
        store: TaskStore = Depends(get_store),
    ):
        if task is None or not task_id:
            raise HTTPException(status_code=404, detail="task not found")
        try:
            result = await store.update_task(task_id, {"category": task.category})
        except STORE_ERRORS:
            logger.exception("failed to move task %s", task_id)
            raise HTTPException(status_code=500, detail="Failed to update task")
        return envelope("Successfully updated the task", result, 201)

    @app.get("/tasks/single-task/{task_id}")
    async def single_task(task_id: str, store: TaskStore = Depends(get_store)):
        if not task_id:
            raise HTTPException(status_code=404, detail="task not found")
        try:
            result = await store.find_task(task_id)
        except STORE_ERRORS:
            logger.exception("failed to get task %s", task_id)
            raise HTTPException(status_code=500, detail="Failed to get task")
        return envelope("Successfully got the task", result, 201)

    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = app.state.settings
    setup_logging(settings.log_level)
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
