"""Vercel deployment of a generated project."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
import os
import re
from typing import Protocol

from sitegen.config import Settings
from sitegen.errors import DeploymentError


logger = logging.getLogger(__name__)

DEPLOYMENT_FILE_NAME = "deployment-status.json"

_URL_RE = re.compile(r"https://[^\s]+")


@dataclass
class DeploymentOutcome:
    url: str | None = None
    error: str | None = None


class Deployer(Protocol):
    async def deploy(self, project_path: str) -> DeploymentOutcome:
        ...


def write_deployment_status(project_path: str, outcome: DeploymentOutcome) -> None:
    status_path = os.path.join(project_path, DEPLOYMENT_FILE_NAME)
    payload = {
        "url": outcome.url,
        "error": outcome.error,
        "deployed_at": datetime.now(timezone.utc).isoformat(),
    }
    try:
        with open(status_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
    except OSError as e:
        logger.error(f"[deploy] Could not write {status_path}: {e}")


def extract_deployment_url(output: str) -> str | None:
    """Last https:// URL printed by the CLI is the production URL."""
    urls = _URL_RE.findall(output)
    return urls[-1].rstrip(".,") if urls else None


class VercelDeployer:
    def __init__(self, settings: Settings):
        self.settings = settings

    async def _run_cli(self, project_path: str) -> str:
        token = self.settings.vercel_token
        if not token:
            raise DeploymentError("VERCEL_TOKEN is not set")

        try:
            proc = await asyncio.create_subprocess_exec(
                "vercel", "deploy", "--prod", "--yes", "--token", token,
                cwd=project_path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise DeploymentError("Vercel CLI is not installed") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.settings.deploy_timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise DeploymentError(f"Deployment timed out after {self.settings.deploy_timeout}s") from e

        out = stdout.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            err = stderr.decode("utf-8", errors="replace").strip()
            raise DeploymentError(err[-500:] or f"vercel exited with code {proc.returncode}")
        return out

    async def deploy(self, project_path: str) -> DeploymentOutcome:
        """Deploy the project; failures are returned in the outcome, never raised."""
        logger.info(f"[deploy] Deploying {project_path}")
        try:
            output = await self._run_cli(project_path)
            url = extract_deployment_url(output)
            if url is None:
                raise DeploymentError("Deployment finished but no URL was reported")
            outcome = DeploymentOutcome(url=url)
            logger.info(f"[deploy] Deployed to {url}")
        except DeploymentError as e:
            logger.error(f"[deploy] Failed: {e}")
            outcome = DeploymentOutcome(error=str(e))

        write_deployment_status(project_path, outcome)
        return outcome
