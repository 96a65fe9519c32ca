import logging
from typing import Annotated, Any, Dict, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import AccountService
from config import get_settings
from database import Database, get_db
from errors import AppError, InternalError, Unauthorized, ValidationError
from schemas import AuthResponse, MessageResponse, TaskCreate, TaskPage, TaskResponse, TaskUpdate, UserCreate, UserLogin
from tasks import DEFAULT_SORT, TaskService

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI
app = FastAPI(title=settings.app_name)

# Configure CORS (Cross-Origin Resource Sharing) so the browser front-end can call the API
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Reads the bearer token from the Authorization header. Missing tokens are
# reported by get_current_user so they get the same error body as bad ones.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


# --- Error handlers ---

@app.exception_handler(AppError)
def app_error_handler(request: Request, exc: AppError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


# Malformed bodies and query strings are a 400, like every other validation failure
@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    error = ValidationError.from_pydantic(exc)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(StarletteHTTPException)
def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# --- Dependencies ---

def get_account_service(db: Annotated[Database, Depends(get_db)]) -> AccountService:
    return AccountService(db)


def get_task_service(db: Annotated[Database, Depends(get_db)]) -> TaskService:
    return TaskService(db)


# Dependency function to get the current authenticated user from the JWT token
def get_current_user(
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> Dict[str, Any]:
    return accounts.resolve_user(token)


CurrentUser = Annotated[Dict[str, Any], Depends(get_current_user)]
Tasks = Annotated[TaskService, Depends(get_task_service)]
Accounts = Annotated[AccountService, Depends(get_account_service)]


# --- API Endpoints ---

@app.get("/health")
def health():
    return {"status": "ok"}


auth_router = APIRouter(prefix="/auth", tags=["auth"])


# Endpoint for user registration
@auth_router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(user: UserCreate, accounts: Accounts):
    result = accounts.signup(user)
    return {"message": "User created successfully", "token": result.token, "user": result.user}


# Endpoint for user login to get an access token
@auth_router.post("/login", response_model=AuthResponse)
def login(credentials: UserLogin, accounts: Accounts):
    result = accounts.login(credentials)
    return {"message": "Login successful", "token": result.token, "user": result.user}


# Every task endpoint takes CurrentUser, so none of them runs without a valid token
tasks_router = APIRouter(prefix="/tasks", tags=["tasks"])


# Endpoint to list the authenticated user's tasks
@tasks_router.get("", response_model=TaskPage)
def list_tasks(
    current_user: CurrentUser,
    tasks: Tasks,
    task_status: Annotated[Optional[str], Query(alias="status")] = None,
    sort_by: Annotated[str, Query(alias="sortBy")] = DEFAULT_SORT,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1)] = settings.default_page_size,
):
    return tasks.list_tasks(current_user["_id"], status=task_status, sort_by=sort_by, page=page, limit=limit)


# Endpoint to create a new task
@tasks_router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(task: TaskCreate, current_user: CurrentUser, tasks: Tasks):
    created = tasks.create_task(current_user["_id"], task)
    return {"message": "Task created successfully", "task": created}


# Endpoint to update an existing task; only the fields sent are changed
@tasks_router.put("/{task_id}", response_model=TaskResponse)
def update_task(task_id: str, task: TaskUpdate, current_user: CurrentUser, tasks: Tasks):
    updated = tasks.update_task(current_user["_id"], task_id, task)
    return {"message": "Task updated successfully", "task": updated}


# Endpoint to delete a task
@tasks_router.delete("/{task_id}", response_model=MessageResponse)
def delete_task(task_id: str, current_user: CurrentUser, tasks: Tasks):
    tasks.delete_task(current_user["_id"], task_id)
    return {"message": "Task deleted successfully"}


app.include_router(auth_router)
app.include_router(tasks_router)


if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.reload)
