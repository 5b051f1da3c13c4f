import logging
import os
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import reports
from database import COLLECTIONS, JsonDatabase, StoreUnavailable, db
from schemas import LoginRequest, ProjectIn, ResourceIn, TaskIn
from services import InvalidRecord, ProjectService, ResourceService, TaskService, UserService
from tracker_logging import setup_logging

setup_logging(os.getenv("LOG_LEVEL", "INFO"), os.getenv("LOG_FILE"))
logger = logging.getLogger("tracker.api")

app = FastAPI(title="Project Tracking API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# NOTE: the server keeps no session. Login only checks credentials; every
# other endpoint is open and the client decides who is "logged in".


# Dependencies
def get_db() -> JsonDatabase:
    return db


def get_users(database: JsonDatabase = Depends(get_db)) -> UserService:
    return UserService(database)


def get_projects(database: JsonDatabase = Depends(get_db)) -> ProjectService:
    return ProjectService(database)


def get_tasks(database: JsonDatabase = Depends(get_db)) -> TaskService:
    return TaskService(database)


def get_resources(database: JsonDatabase = Depends(get_db),
                  users: UserService = Depends(get_users)) -> ResourceService:
    return ResourceService(database, users)


# Error handlers
@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    return JSONResponse(status_code=500, content={"detail": f"Unable to read {exc.collection} data"})


@app.exception_handler(RequestValidationError)
async def bad_request_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()]
    return JSONResponse(status_code=400, content={"detail": "Bad request", "errors": errors})


@app.exception_handler(InvalidRecord)
async def invalid_record_handler(request: Request, exc: InvalidRecord):
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": "Bad request", "errors": [{"loc": ["body"], "msg": str(exc)}]})


# Root endpoints
@app.get("/")
def read_root():
    return {"message": "Project Tracking Backend is running"}


@app.get("/test")
def test_database(database: JsonDatabase = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "data_dir": database.name,
        "collections": {},
    }
    for name in COLLECTIONS:
        try:
            response["collections"][name] = f"✅ {len(database.read(name))} record(s)"
        except StoreUnavailable as e:
            response["collections"][name] = f"❌ Error: {e.reason[:50]}"
    return response


# Auth
@app.post("/api/login")
def login(payload: LoginRequest, users: UserService = Depends(get_users)):
    user = users.authenticate(payload.username, payload.password)
    if user is None:
        logger.warning("Failed login for %r", payload.username)
        return JSONResponse(status_code=401, content={"success": False, "message": "Invalid username or password"})
    return {"success": True, "user": user, "message": "Login successful"}


# Users
@app.get("/api/users")
def list_users(users: UserService = Depends(get_users)):
    return users.list()


@app.get("/api/users/{user_id}")
def get_user(user_id: str, users: UserService = Depends(get_users)):
    user = users.get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# Projects
@app.get("/api/projects")
def list_projects(status: Optional[str] = None, projects: ProjectService = Depends(get_projects)):
    return projects.list(status=status)


@app.get("/api/projects/{project_id}")
def get_project(project_id: str, projects: ProjectService = Depends(get_projects)):
    doc = projects.get_by_id(project_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Project not found")
    return doc


@app.post("/api/projects", status_code=201)
def create_project(project: ProjectIn, projects: ProjectService = Depends(get_projects)):
    return projects.create(project.to_record())


@app.put("/api/projects/{project_id}")
def update_project(project_id: str, project: ProjectIn, projects: ProjectService = Depends(get_projects)):
    doc = projects.update(project_id, project.to_record())
    if not doc:
        raise HTTPException(status_code=404, detail="Project not found")
    return doc


@app.delete("/api/projects/{project_id}")
def delete_project(project_id: str, projects: ProjectService = Depends(get_projects)):
    if not projects.delete(project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    return {"success": True, "message": "Project deleted successfully"}


# Tasks
@app.get("/api/tasks")
def list_tasks(projectId: Optional[str] = None, status: Optional[str] = None,
               tasks: TaskService = Depends(get_tasks)):
    return tasks.list(project_id=projectId, status=status)


@app.get("/api/tasks/{task_id}")
def get_task(task_id: str, tasks: TaskService = Depends(get_tasks)):
    doc = tasks.get_by_id(task_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Task not found")
    return doc


@app.post("/api/tasks", status_code=201)
def create_task(task: TaskIn, tasks: TaskService = Depends(get_tasks)):
    return tasks.create(task.to_record())


@app.put("/api/tasks/{task_id}")
def update_task(task_id: str, task: TaskIn, tasks: TaskService = Depends(get_tasks)):
    doc = tasks.update(task_id, task.to_record())
    if not doc:
        raise HTTPException(status_code=404, detail="Task not found")
    return doc


@app.delete("/api/tasks/{task_id}")
def delete_task(task_id: str, tasks: TaskService = Depends(get_tasks)):
    if not tasks.delete(task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"success": True, "message": "Task deleted successfully"}


# Resource allocations (no delete)
@app.get("/api/resources")
def list_resources(projectId: Optional[str] = None, userId: Optional[str] = None,
                   resources: ResourceService = Depends(get_resources)):
    return resources.list(project_id=projectId, user_id=userId)


@app.get("/api/resources/{resource_id}")
def get_resource(resource_id: str, resources: ResourceService = Depends(get_resources)):
    doc = resources.get_by_id(resource_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Resource not found")
    return doc


@app.post("/api/resources", status_code=201)
def create_resource(resource: ResourceIn, resources: ResourceService = Depends(get_resources)):
    return resources.create(resource.to_record())


@app.put("/api/resources/{resource_id}")
def update_resource(resource_id: str, resource: ResourceIn, resources: ResourceService = Depends(get_resources)):
    doc = resources.update(resource_id, resource.to_record())
    if not doc:
        raise HTTPException(status_code=404, detail="Resource not found")
    return doc


# Reports
@app.get("/api/reports/dashboard")
def dashboard_report(projects: ProjectService = Depends(get_projects), tasks: TaskService = Depends(get_tasks),
                     resources: ResourceService = Depends(get_resources)):
    return reports.dashboard_stats(projects.list(), tasks.list(), resources.list())


@app.get("/api/reports/project-progress/{project_id}")
def project_progress_report(project_id: str, tasks: TaskService = Depends(get_tasks)):
    return reports.project_progress(project_id, tasks.list(project_id=project_id))


@app.get("/api/reports/project-status")
def project_status_report(projects: ProjectService = Depends(get_projects)):
    return reports.project_status_report(projects.list())


@app.get("/api/reports/tasks")
def task_report(tasks: TaskService = Depends(get_tasks)):
    return reports.task_report(tasks.list())


@app.get("/api/reports/resources")
def resource_report(resources: ResourceService = Depends(get_resources)):
    return reports.resource_report(resources.list())


@app.get("/api/reports/budget")
def budget_report(projects: ProjectService = Depends(get_projects)):
    return reports.budget_report(projects.list())


@app.get("/api/reports/project/{project_id}")
def project_report(project_id: str, projects: ProjectService = Depends(get_projects),
                   tasks: TaskService = Depends(get_tasks), resources: ResourceService = Depends(get_resources)):
    project = projects.get_by_id(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return reports.project_report(project, tasks.list(project_id=project_id),
                                  resources.list(project_id=project_id))


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=port)
