"""HTTP backend of the issue migrator web UI.

Endpoints:
    GET  /api/health         liveness check
    POST /api/github/issues  list the issues of a GitHub repository
    POST /api/gitlab/issues  list the issues of a GitLab project
    POST /api/migrate        migrate selected issues, answering with the ledger

Migration requests are answered synchronously. Every request carries its own
credentials; nothing is kept between requests.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from . import github_utils as ghu
from . import gitlab_utils as glu
from .config import ServerSettings
from .exceptions import FetchError, MigrationError
from .models import Direction, PlatformConfig
from .orchestrator import create_migrator

logger: logging.Logger = logging.getLogger(__name__)


class PlatformConfigModel(BaseModel):
    type: str = ""
    owner: str = ""
    repo: str = ""
    project_id: int = 0
    base_url: str = ""
    token: str = ""
    session: str = ""

    def to_config(self) -> PlatformConfig:
        return PlatformConfig(**self.model_dump())


class MigrateRequest(BaseModel):
    direction: Direction
    source: PlatformConfigModel
    target: PlatformConfigModel
    issue_ids: list[int] = Field(min_length=1)
    timeout_seconds: float | None = Field(default=None, gt=0)


class GitHubIssuesRequest(BaseModel):
    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    token: str = ""


class GitLabIssuesRequest(BaseModel):
    base_url: str = Field(min_length=1)
    project_id: int
    token: str = Field(min_length=1)


def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build the FastAPI application."""
    settings = settings or ServerSettings.from_env()
    app = FastAPI(title="Issue Migrator")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Authorization"],
    )

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/github/issues")
    def github_issues(request: GitHubIssuesRequest) -> dict[str, Any]:
        source = ghu.GitHubSource(PlatformConfig(type="github", owner=request.owner, repo=request.repo, token=request.token))
        try:
            issues = source.list_issues()
        except FetchError as e:
            logger.exception("Listing GitHub issues failed")
            raise HTTPException(status_code=500, detail=str(e)) from e
        return {"issues": [asdict(issue) for issue in issues], "count": len(issues)}

    @app.post("/api/gitlab/issues")
    def gitlab_issues(request: GitLabIssuesRequest) -> dict[str, Any]:
        source = glu.GitLabSource(
            PlatformConfig(type="gitlab", base_url=request.base_url, project_id=request.project_id, token=request.token)
        )
        try:
            issues = source.list_issues()
        except FetchError as e:
            logger.exception("Listing GitLab issues failed")
            raise HTTPException(status_code=500, detail=str(e)) from e
        return {"issues": [asdict(issue) for issue in issues], "count": len(issues)}

    @app.post("/api/migrate")
    def migrate(request: MigrateRequest) -> dict[str, Any]:
        logger.info(f"Migration request: {request.direction.value}, issues {request.issue_ids}")
        deadline = time.monotonic() + request.timeout_seconds if request.timeout_seconds else None
        try:
            migrator = create_migrator(request.direction, request.source.to_config(), request.target.to_config())
        except MigrationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        result = migrator.migrate(request.issue_ids, deadline=deadline)
        return result.to_dict()

    return app


def run(settings: ServerSettings | None = None) -> None:
    """Serve the API with uvicorn until interrupted."""
    settings = settings or ServerSettings.from_env()
    logger.info(f"Starting server on {settings.host}:{settings.port}")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)
