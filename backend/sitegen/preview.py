"""
Read-only views of a generated project for the preview endpoint.

Nothing here writes to the project tree.
"""

from datetime import datetime, timezone
import json
import logging
import os
import re

from sitegen.deployer import DEPLOYMENT_FILE_NAME
from sitegen.models import GenerationCounts
from sitegen.pipeline import STATUS_FILE_NAME


logger = logging.getLogger(__name__)

SKIP_DIRS = {"node_modules", ".next"}

CONTENT_TYPES = {
    ".tsx": "text/typescript",
    ".ts": "text/typescript",
    ".jsx": "text/javascript",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".css": "text/css",
    ".html": "text/html",
    ".md": "text/markdown",
    ".svg": "image/svg+xml",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".ico": "image/x-icon",
}

_PAGE_IMPORT_RE = re.compile(r"""^import\s+(\w+)\s+from\s+['"]\.\./components/([^'"]+)['"]""", re.MULTILINE)


def project_structure(path: str) -> dict:
    """Nested dict: directories map to dicts, files to {size, modified}."""
    structure = {}
    for entry in sorted(os.scandir(path), key=lambda e: e.name):
        if entry.is_dir(follow_symlinks=False):
            if entry.name in SKIP_DIRS:
                continue
            structure[entry.name] = project_structure(entry.path)
        elif entry.is_file(follow_symlinks=False):
            stat = entry.stat()
            structure[entry.name] = {
                "size": stat.st_size,
                "modified": datetime.fromtimestamp(stat.st_mtime, timezone.utc).isoformat(),
            }
    return structure


def _load_json(path: str) -> dict | None:
    if not os.path.isfile(path):
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"[preview] Unreadable {path}: {e}")
        return None
    return data if isinstance(data, dict) else None


def _derive_status(project_path: str) -> dict:
    """Status from page.tsx imports vs. component files on disk."""
    page_path = os.path.join(project_path, "src", "app", "page.tsx")
    components_dir = os.path.join(project_path, "src", "components")

    imported = []
    if os.path.isfile(page_path):
        with open(page_path, "r", encoding="utf-8") as f:
            imported = _PAGE_IMPORT_RE.findall(f.read())

    components = []
    for identifier, module in imported:
        exists = any(
            os.path.isfile(os.path.join(components_dir, module + ext))
            for ext in (".tsx", ".jsx", ".ts", ".js", "")
        )
        components.append({
            "name": identifier,
            "type": "section",
            "status": "completed" if exists else "failed",
            "error": None if exists else "Component file not found",
        })

    completed = sum(1 for c in components if c["status"] == "completed")
    counts = GenerationCounts.compute(len(components), completed, len(components) - completed)
    return {"status": counts.model_dump(mode="json"), "components": components}


def project_status(project_path: str) -> dict:
    """Recorded generation status, or one derived from the page when none was written."""
    recorded = _load_json(os.path.join(project_path, STATUS_FILE_NAME))
    if recorded is not None and "status" in recorded:
        return {"status": recorded["status"], "components": recorded.get("components", [])}
    return _derive_status(project_path)


def read_deployment_error(project_path: str) -> str | None:
    data = _load_json(os.path.join(project_path, DEPLOYMENT_FILE_NAME))
    if data is None:
        return None
    return data.get("error")


def content_type_for(path: str) -> str:
    ext = os.path.splitext(path)[1].lower()
    return CONTENT_TYPES.get(ext, "text/plain")


def resolve_project_file(project_path: str, relative: str) -> str | None:
    """Absolute path of a file inside the project, or None when missing or outside it."""
    root = os.path.realpath(project_path)
    candidate = os.path.realpath(os.path.join(root, relative.lstrip("/\\")))
    if os.path.commonpath([root, candidate]) != root:
        return None
    if not os.path.isfile(candidate):
        return None
    return candidate


def resolve_project_dir(projects_dir: str, project_dir: str) -> str | None:
    """Absolute path of a project directory, or None when the id is unknown or unsafe."""
    if not project_dir or project_dir in (".", "..") or "/" in project_dir or "\\" in project_dir:
        return None
    path = os.path.join(projects_dir, project_dir)
    return path if os.path.isdir(path) else None


def list_projects(projects_dir: str) -> list[dict]:
    """Generated projects, newest first, with their recorded counts when present."""
    if not os.path.isdir(projects_dir):
        return []
    projects = []
    for entry in os.scandir(projects_dir):
        if not entry.is_dir(follow_symlinks=False):
            continue
        recorded = _load_json(os.path.join(entry.path, STATUS_FILE_NAME)) or {}
        projects.append({
            "project_dir": entry.name,
            "created_at": entry.stat().st_mtime,
            "status": recorded.get("status"),
            "deployment_error": read_deployment_error(entry.path),
        })
    projects.sort(key=lambda p: p["created_at"], reverse=True)
    for project in projects:
        project["created_at"] = datetime.fromtimestamp(project["created_at"], timezone.utc).isoformat()
    return projects
