from contextlib import asynccontextmanager
import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from sitegen.archive import build_project_zip
from sitegen.config import Settings, get_settings
from sitegen.deployer import Deployer, VercelDeployer
from sitegen.dev_server import DevServerManager
from sitegen.errors import DevServerError, ModelError, ProjectFileError
from sitegen.form_parser import parse_profile_request
from sitegen.llm_client import AnthropicModelClient, ModelClient
from sitegen.logging_config import configure_logging
from sitegen.pipeline import GenerationService
from sitegen.preview import (
    content_type_for,
    list_projects,
    project_status,
    project_structure,
    read_deployment_error,
    resolve_project_dir,
    resolve_project_file,
)
from sitegen.status_tracker import StatusTracker


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class InstallRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    project_dir: str


def _error(status_code: int, error: str, details=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "details": details})


def create_app(
    settings: Settings | None = None,
    model_client: ModelClient | None = None,
    deployer: Deployer | None = None,
    dev_servers: DevServerManager | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    model_client = model_client or AnthropicModelClient(settings)
    if deployer is None and settings.deploy_enabled:
        deployer = VercelDeployer(settings)
    dev_servers = dev_servers or DevServerManager(settings)
    tracker = StatusTracker(ttl_seconds=settings.status_ttl_seconds)
    service = GenerationService(settings, model_client, tracker, deployer)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        os.makedirs(settings.projects_dir, exist_ok=True)
        logger.info(f"[startup] Projects directory: {settings.projects_dir}")
        yield
        await dev_servers.stop_all()

    app = FastAPI(title="Landing Page Generator API", lifespan=lifespan)
    app.state.settings = settings
    app.state.tracker = tracker
    app.state.service = service
    app.state.dev_servers = dev_servers

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ModelError)
    async def model_error_handler(request: Request, exc: ModelError):
        logger.error(f"[api] Model error ({exc.category.value}): {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(ProjectFileError)
    async def project_file_error_handler(request: Request, exc: ProjectFileError):
        logger.error(f"[api] Filesystem error: {exc}")
        return JSONResponse(status_code=500, content=exc.to_response())

    @app.exception_handler(DevServerError)
    async def dev_server_error_handler(request: Request, exc: DevServerError):
        logger.error(f"[api] Dev server error: {exc}")
        return _error(500, "Failed to start dev server", str(exc))

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------

    @app.get("/")
    def root():
        return {"message": "Landing page generator is running"}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/generate")
    async def generate(request: Request):
        """Validate the business form and generate a landing page project."""
        parsed = await parse_profile_request(request)
        if not parsed.ok:
            return JSONResponse(status_code=parsed.error.status_code, content=parsed.error.to_response())

        try:
            result = await service.generate(parsed.profile)
        except (ModelError, ProjectFileError):
            raise
        except Exception as e:
            logger.exception(f"[api] Generation failed: {e}")
            return _error(500, "Failed to generate landing page", str(e))
        return result.model_dump(mode="json")

    @app.get("/generate/status")
    async def generation_status(project: str | None = None):
        if not project:
            return _error(400, "Missing project parameter")
        state = tracker.get(project)
        if state is None:
            return _error(404, "Project not found", project)
        return state.model_dump(mode="json")

    @app.get("/generate/preview")
    async def preview(project: str | None = None, path: str | None = None):
        if not project:
            return _error(400, "Missing project parameter")
        project_path = resolve_project_dir(settings.projects_dir, project)
        if project_path is None:
            return _error(404, "Project not found", project)

        if path:
            file_path = resolve_project_file(project_path, path)
            if file_path is None:
                return _error(404, "File not found", path)
            with open(file_path, "rb") as f:
                content = f.read()
            return Response(content=content, media_type=content_type_for(file_path))

        return {
            "project_dir": project,
            "structure": project_structure(project_path),
            **project_status(project_path),
            "deployment_error": read_deployment_error(project_path),
        }

    @app.get("/generate/download")
    async def download(project: str | None = None):
        if not project:
            return _error(400, "Missing project parameter")
        project_path = resolve_project_dir(settings.projects_dir, project)
        if project_path is None:
            return _error(404, "Project not found", project)
        data = build_project_zip(project_path, project)
        return Response(
            content=data,
            media_type="application/zip",
            headers={"Content-Disposition": f'attachment; filename="{project}.zip"'},
        )

    @app.post("/generate/install")
    async def install(body: InstallRequest):
        if resolve_project_dir(settings.projects_dir, body.project_dir) is None:
            return _error(404, "Project not found", body.project_dir)
        return await dev_servers.ensure_running(body.project_dir)

    @app.get("/generate/install")
    async def install_status(project: str | None = None):
        if not project:
            return _error(400, "Missing project parameter")
        running = dev_servers.status(project)
        if running is None:
            return {"project_dir": project, "running": False}
        return {**running, "running": True}

    @app.get("/projects")
    async def projects():
        return {"projects": list_projects(settings.projects_dir)}

    return app


app = create_app()
