"""FastAPI application exposing the expense tracking endpoints."""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session

from . import __version__, crud, database, schemas, security
from .config import get_settings
from .errors import ExpenseAPIError
from .logging import get_stream_logger
from .query import ExpenseQuery

LOG = get_stream_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    database.init_db()
    yield


app = FastAPI(title="Expense Tracker API", version=__version__, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.middleware("http")
async def limit_body_size(request: Request, call_next):
    declared = request.headers.get("content-length")
    if declared is not None:
        try:
            length = int(declared)
        except ValueError:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"message": "Invalid Content-Length header"},
            )
        if length > get_settings().max_body_bytes:
            LOG.warning("Rejected %d byte body on %s %s", length, request.method, request.url.path)
            return JSONResponse(
                status_code=413,
                content={"message": "Request body too large"},
            )
    return await call_next(request)


# Outermost, so requests rejected by the size check are logged as well.
@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = round((time.perf_counter() - started) * 1000, 2)
    LOG.info(
        "%s %s -> %d (%.2f ms)",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    return response


@app.exception_handler(ExpenseAPIError)
async def handle_api_error(_: Request, exc: ExpenseAPIError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def handle_request_validation(_: Request, exc: RequestValidationError) -> JSONResponse:
    message = "Invalid request"
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query"))
        detail = first.get("msg", "invalid value")
        message = f"{location}: {detail}" if location else detail
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": message})


@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    LOG.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error"},
    )


@app.get("/", response_class=PlainTextResponse, tags=["system"])
def index() -> str:
    return "Hello Expense"


@app.get("/health", tags=["system"])
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@app.post(
    "/register",
    response_model=schemas.UserEnvelope,
    status_code=status.HTTP_201_CREATED,
    tags=["auth"],
)
def register(user_in: schemas.UserRegister, db: Session = Depends(database.get_db)) -> schemas.UserEnvelope:
    user = crud.register_user(db, user_in)
    return schemas.UserEnvelope(
        user=schemas.UserRead.model_validate(user),
        message="User created successfully",
    )


@app.post("/login", response_model=schemas.LoginRead, tags=["auth"])
def login(
    credentials: schemas.UserLogin,
    response: Response,
    db: Session = Depends(database.get_db),
) -> schemas.LoginRead:
    settings = get_settings()
    user = crud.authenticate_user(db, credentials)
    token = security.create_access_token(user, settings)
    response.set_cookie(
        security.ACCESS_TOKEN_COOKIE,
        token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )
    return schemas.LoginRead(
        user=schemas.UserRead.model_validate(user),
        access_token=token,
        message="User logged in successfully",
    )


@app.post(
    "/expense",
    response_model=schemas.ExpenseEnvelope,
    status_code=status.HTTP_201_CREATED,
    tags=["expense"],
)
def create_expense(
    expense_in: schemas.ExpenseCreate,
    db: Session = Depends(database.get_db),
    user_id: Optional[str] = Depends(security.optional_user_id),
) -> schemas.ExpenseEnvelope:
    expense = crud.create_expense(db, expense_in, author_id=user_id)
    return schemas.ExpenseEnvelope(
        expense=schemas.ExpenseRead.model_validate(expense),
        message="Expense created successfully",
    )


@app.get("/expense", response_model=schemas.ExpensePageRead, tags=["expense"])
def list_expenses(
    search: Optional[str] = Query(None),
    filter: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    sort: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    db: Session = Depends(database.get_db),
    _: Optional[str] = Depends(security.optional_user_id),
) -> schemas.ExpensePageRead:
    query = ExpenseQuery.from_params(
        {
            "search": search,
            "filter": filter,
            "startDate": start_date,
            "endDate": end_date,
            "sort": sort,
            "page": page,
            "limit": limit,
        }
    )
    result = crud.list_expenses(db, query)
    return schemas.ExpensePageRead(
        data=[schemas.ExpenseRead.model_validate(item) for item in result.items],
        total_pages=result.total_pages,
        page=result.page,
        total_elements=result.total_elements,
        message="Expenses fetched successfully",
    )


@app.get("/expense/{expense_id}", response_model=schemas.ExpenseEnvelope, tags=["expense"])
def get_expense(
    expense_id: str,
    db: Session = Depends(database.get_db),
    _: Optional[str] = Depends(security.optional_user_id),
) -> schemas.ExpenseEnvelope:
    expense = crud.get_expense(db, expense_id)
    return schemas.ExpenseEnvelope(
        expense=schemas.ExpenseRead.model_validate(expense),
        message="Expense fetched successfully",
    )


@app.put("/expense/{expense_id}", response_model=schemas.ExpenseEnvelope, tags=["expense"])
def update_expense(
    expense_id: str,
    update_in: schemas.ExpenseUpdate,
    db: Session = Depends(database.get_db),
    _: Optional[str] = Depends(security.optional_user_id),
) -> schemas.ExpenseEnvelope:
    expense = crud.update_expense(db, expense_id, update_in)
    return schemas.ExpenseEnvelope(
        expense=schemas.ExpenseRead.model_validate(expense),
        message="Expense updated successfully",
    )


@app.delete("/expense/{expense_id}", response_model=schemas.DeletedRead, tags=["expense"])
def delete_expense(
    expense_id: str,
    db: Session = Depends(database.get_db),
    _: Optional[str] = Depends(security.optional_user_id),
) -> schemas.DeletedRead:
    crud.delete_expense(db, expense_id)
    return schemas.DeletedRead(deleted=True, message="Expense deleted successfully")
