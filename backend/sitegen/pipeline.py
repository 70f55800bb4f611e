"""
Generation orchestrator: profile in, project directory + summary out.

Pipeline (strictly sequential, one model call in flight at a time):
  1. scaffold   — project tree and static config files
  2. plan       — one model call, components sorted by priority
  3. generate   — one component at a time, status published before and after each
  4. finalize   — generation-status.json, optional deployment, summary
"""

import json
import logging
import os
import time

from sitegen.config import Settings
from sitegen.deployer import Deployer
from sitegen.errors import ProjectFileError
from sitegen.llm_client import ModelClient
from sitegen.models import (
    BusinessProfile,
    ComponentResult,
    ComponentState,
    ComponentStatus,
    GenerationCounts,
    GenerationResult,
    TokenUsage,
)
from sitegen.project_assembler import make_project_dir_name, scaffold_project
from sitegen.section_generator import generate_component
from sitegen.section_planner import plan_site
from sitegen.status_tracker import StatusTracker


logger = logging.getLogger(__name__)

STATUS_FILE_NAME = "generation-status.json"


def write_status_file(
    project_path: str,
    project_dir: str,
    counts: GenerationCounts,
    components: list[ComponentStatus],
    usage: TokenUsage,
) -> str:
    """Write the final status snapshot into the project directory."""
    status_path = os.path.join(project_path, STATUS_FILE_NAME)
    payload = {
        "project_dir": project_dir,
        "status": counts.model_dump(mode="json"),
        "components": [c.model_dump(mode="json") for c in components],
        "token_usage": usage.model_dump(mode="json"),
    }
    try:
        with open(status_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
    except OSError as e:
        raise ProjectFileError("write status", status_path, e) from e
    return status_path


class GenerationService:
    """Runs one generation request end to end. Construct once per process."""

    def __init__(
        self,
        settings: Settings,
        model_client: ModelClient,
        tracker: StatusTracker,
        deployer: Deployer | None = None,
    ):
        self.settings = settings
        self.model_client = model_client
        self.tracker = tracker
        self.deployer = deployer

    def should_deploy(self, counts: GenerationCounts) -> bool:
        if not self.settings.deploy_enabled or self.deployer is None or counts.total == 0:
            return False
        return counts.completed / counts.total >= self.settings.deploy_threshold

    async def generate(self, profile: BusinessProfile) -> GenerationResult:
        """
        Scaffold, plan and generate a landing page for the profile.

        Raises ModelError/PlanError when planning fails and ProjectFileError on
        any filesystem failure. Per-component failures are reported in the
        result, never raised.
        """
        t0 = time.time()
        usage = TokenUsage()

        project_dir = make_project_dir_name(profile.business_name, int(time.time() * 1000))
        log_extra = {"project": project_dir}
        setup = scaffold_project(profile, self.settings.projects_dir, project_dir)
        project_path = setup.project_path

        site_plan = await plan_site(profile, self.model_client, self.settings, usage)
        ordered = site_plan.sorted_components()
        total = len(ordered)
        logger.info(f"[pipeline] Generating {total} components", extra=log_extra)

        statuses = [
            ComponentStatus(name=c.name, type=c.type, description=c.description)
            for c in ordered
        ]
        results: list[ComponentResult] = []
        completed = 0
        failed = 0
        self.tracker.publish(project_dir, GenerationCounts.compute(total, 0, 0), statuses)

        for i, plan in enumerate(ordered):
            statuses[i] = statuses[i].model_copy(update={"status": ComponentState.pending, "error": None})
            self.tracker.publish(project_dir, GenerationCounts.compute(total, completed, failed), statuses)
            logger.info(f"[pipeline] ({i + 1}/{total}) {plan.name}", extra=log_extra)

            try:
                generated = await generate_component(
                    plan, profile, project_path, self.model_client, self.settings, usage,
                )
            except ProjectFileError:
                logger.error(f"[pipeline] Filesystem failure while generating {plan.name}", extra=log_extra)
                raise
            except Exception as e:
                failed += 1
                error = str(e) or e.__class__.__name__
                logger.error(f"[pipeline] {plan.name} failed: {error}", extra=log_extra)
                statuses[i] = statuses[i].model_copy(update={"status": ComponentState.failed, "error": error})
                results.append(ComponentResult(
                    name=plan.name,
                    code="",
                    path="",
                    description=plan.description,
                    type=plan.type,
                    priority=plan.priority,
                    status=ComponentState.failed,
                    error=error,
                ))
            else:
                # Fallback output counts as completed
                completed += 1
                statuses[i] = statuses[i].model_copy(update={
                    "status": ComponentState.completed,
                    "fallback_used": generated.fallback_used,
                })
                results.append(ComponentResult(
                    **generated.model_dump(exclude={"name"}),
                    name=plan.name,
                    description=plan.description,
                    type=plan.type,
                    priority=plan.priority,
                    status=ComponentState.completed,
                ))

            self.tracker.publish(project_dir, GenerationCounts.compute(total, completed, failed), statuses)

        counts = GenerationCounts.compute(total, completed, failed)
        write_status_file(project_path, project_dir, counts, statuses, usage)

        deployed_url = None
        deployment_error = None
        if self.should_deploy(counts):
            outcome = await self.deployer.deploy(project_path)
            deployed_url, deployment_error = outcome.url, outcome.error
        elif self.settings.deploy_enabled:
            logger.info(
                f"[pipeline] Skipping deployment: {completed}/{total} components completed",
                extra=log_extra,
            )

        logger.info(
            f"[pipeline] Done in {time.time() - t0:.1f}s: {completed} completed, {failed} failed, "
            f"{usage.total_tokens} tokens over {usage.requests} requests",
            extra=log_extra,
        )
        return GenerationResult(
            success=True,
            project_dir=project_dir,
            project_path=project_path,
            site_plan=site_plan,
            components=results,
            status=counts,
            token_usage=usage,
            deployed_url=deployed_url,
            deployment_error=deployment_error,
        )
