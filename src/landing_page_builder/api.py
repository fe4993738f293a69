from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Set

from fastapi import BackgroundTasks, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from .composer import build_zip
from .errors import ConfigurationError, NoPagePlanError, OperationInProgressError, SectionNotFoundError
from .models.edit import EditResult, SectionEditStatus
from .models.project import ProjectRecord, ProjectStatus
from .orchestrator import PageOrchestrator
from .project_store import ProjectRepository
from .scheduler import GenerationReport

logger = logging.getLogger(__name__)

OrchestratorFactory = Callable[[], PageOrchestrator]


class GeneratePageRequest(BaseModel):
    prompt: str = Field(min_length=1)


class EditPageRequest(BaseModel):
    prompt: str = Field(min_length=1)


class RegenerateSectionRequest(BaseModel):
    prompt: str | None = Field(default=None, description="Defaults to the project's original prompt")


class OperationAccepted(BaseModel):
    project_id: str
    status: ProjectStatus


class ProjectResponse(BaseModel):
    id: str
    prompt: str
    status: ProjectStatus
    summary: str | None = None
    errors: list[str]
    plan: dict[str, Any] | None = None
    page_state: dict[str, Any] | None = None

    @staticmethod
    def from_record(record: ProjectRecord, orchestrator: PageOrchestrator | None) -> "ProjectResponse":
        return ProjectResponse(
            id=record.id,
            prompt=record.prompt,
            status=record.status,
            summary=record.summary,
            errors=list(record.errors),
            plan=record.plan.model_dump(mode="json", by_alias=True) if record.plan else None,
            page_state=(
                orchestrator.page_state.model_dump(mode="json", by_alias=True, exclude={"plan"})
                if orchestrator
                else None
            ),
        )


def generation_summary(report: GenerationReport) -> str:
    return f"Page generated successfully!\n{report.summary()}"


def edit_summary(result: EditResult) -> str:
    updated = [item.section_name for item in result.sections if item.status == SectionEditStatus.updated]
    lines = []
    if updated:
        lines.append(f"Updated {', '.join(updated)} based on your request: \"{result.change_description}\".")
    if result.failed_sections:
        failed = ", ".join(item.section_name for item in result.failed_sections)
        lines.append(f"Could not apply the change to {failed}; those sections were left unchanged.")
    return "\n".join(lines)


def _skip_while_busy(orchestrator: PageOrchestrator, project_id: str, requested: str) -> bool:
    mode = orchestrator.page_state.mode
    if mode == "idle":
        return False
    logger.warning(
        "Skipping %s, project is busy with %s",
        requested,
        mode,
        extra={"project_id": project_id},
    )
    return True


async def run_generation(
    project_store: ProjectRepository,
    project_id: str,
    prompt: str,
    orchestrator: PageOrchestrator,
) -> None:
    if _skip_while_busy(orchestrator, project_id, "generation"):
        return
    project_store.update_project(project_id, status=ProjectStatus.in_progress)
    try:
        report = await orchestrator.generate_page(prompt)
        files = await orchestrator.get_composed_page()
        project_store.update_project(
            project_id,
            status=ProjectStatus.completed,
            files=files,
            plan=orchestrator.page_state.plan,
            section_code=orchestrator.section_code(),
            summary=generation_summary(report),
            errors=[f"Failed to generate section: {name}" for name in report.failed_names],
        )
    except Exception as exc:
        logger.error("Page generation failed", exc_info=True, extra={"project_id": project_id})
        project_store.update_project(project_id, status=ProjectStatus.failed, errors=[str(exc)])


async def run_edit(
    project_store: ProjectRepository,
    project_id: str,
    prompt: str,
    orchestrator: PageOrchestrator,
) -> None:
    if _skip_while_busy(orchestrator, project_id, "editing"):
        return
    project_store.update_project(project_id, status=ProjectStatus.in_progress)
    try:
        result = await orchestrator.edit_section_by_prompt(prompt)
        files = await orchestrator.get_composed_page()
        project_store.update_project(
            project_id,
            status=ProjectStatus.completed,
            files=files,
            section_code=orchestrator.section_code(),
            summary=edit_summary(result),
            errors=[],
        )
    except Exception as exc:
        logger.error("Page edit failed", exc_info=True, extra={"project_id": project_id})
        # The previous page is still intact, so the project stays usable.
        project_store.update_project(project_id, status=ProjectStatus.completed, errors=[str(exc)])


async def run_regeneration(
    project_store: ProjectRepository,
    project_id: str,
    section_id: str,
    prompt: str,
    orchestrator: PageOrchestrator,
) -> None:
    if _skip_while_busy(orchestrator, project_id, "regeneration"):
        return
    project_store.update_project(project_id, status=ProjectStatus.in_progress)
    try:
        report = await orchestrator.regenerate_section(section_id, prompt)
        files = await orchestrator.get_composed_page()
        project_store.update_project(
            project_id,
            status=ProjectStatus.completed,
            files=files,
            section_code=orchestrator.section_code(),
            summary=generation_summary(report),
            errors=[f"Failed to generate section: {name}" for name in report.failed_names],
        )
    except Exception as exc:
        logger.error(
            "Section regeneration failed",
            exc_info=True,
            extra={"project_id": project_id, "section_id": section_id},
        )
        project_store.update_project(project_id, status=ProjectStatus.completed, errors=[str(exc)])


def create_app(
    *,
    project_store: ProjectRepository,
    orchestrator_factory: OrchestratorFactory,
) -> FastAPI:
    app = FastAPI(title="Landing Page Builder API", version="0.1.0")
    orchestrators: Dict[str, PageOrchestrator] = {}
    # Projects with an accepted operation whose background task has not finished.
    pending: Set[str] = set()

    def get_record(project_id: str) -> ProjectRecord:
        record = project_store.get_project(project_id)
        if not record:
            raise HTTPException(status_code=404, detail="Project not found")
        return record

    def get_orchestrator(record: ProjectRecord) -> PageOrchestrator:
        orchestrator = orchestrators.get(record.id)
        if orchestrator is None:
            orchestrator = orchestrator_factory()
            if record.plan is not None:
                orchestrator.restore_from_files(record.files, record.plan, record.section_code)
            orchestrators[record.id] = orchestrator
        return orchestrator

    def require_idle(project_id: str, orchestrator: PageOrchestrator | None, requested: str) -> None:
        if project_id in pending:
            raise OperationInProgressError(requested, "another operation")
        if orchestrator is not None and orchestrator.page_state.mode != "idle":
            raise OperationInProgressError(requested, orchestrator.page_state.mode)

    def schedule(
        background_tasks: BackgroundTasks,
        runner: Callable[..., Awaitable[None]],
        project_id: str,
        *args: Any,
    ) -> None:
        async def run() -> None:
            try:
                await runner(project_store, project_id, *args)
            finally:
                pending.discard(project_id)

        pending.add(project_id)
        background_tasks.add_task(run)

    @app.post("/v1/projects", response_model=OperationAccepted, status_code=202)
    async def create_project(request: GeneratePageRequest, background_tasks: BackgroundTasks) -> OperationAccepted:
        orchestrator = orchestrator_factory()
        record = project_store.create_project(prompt=request.prompt)
        orchestrators[record.id] = orchestrator
        schedule(background_tasks, run_generation, record.id, request.prompt, orchestrator)
        return OperationAccepted(project_id=record.id, status=record.status)

    @app.get("/v1/projects", response_model=list[ProjectResponse])
    async def list_projects(
        status: ProjectStatus | None = None,
        limit: int = Query(100, ge=1, le=500),
    ) -> list[ProjectResponse]:
        records = project_store.list_projects(status=status, limit=limit)
        return [ProjectResponse.from_record(record, orchestrators.get(record.id)) for record in records]

    @app.get("/v1/projects/{project_id}", response_model=ProjectResponse)
    async def get_project(project_id: str) -> ProjectResponse:
        record = get_record(project_id)
        return ProjectResponse.from_record(record, orchestrators.get(record.id))

    @app.delete("/v1/projects/{project_id}", status_code=204)
    async def delete_project(project_id: str) -> Response:
        record = get_record(project_id)
        require_idle(record.id, orchestrators.get(record.id), "deleting")
        project_store.delete_project(record.id)
        orchestrators.pop(record.id, None)
        logger.info("Project deleted", extra={"project_id": record.id})
        return Response(status_code=204)

    @app.post("/v1/projects/{project_id}/edits", response_model=OperationAccepted, status_code=202)
    async def edit_project(
        project_id: str,
        request: EditPageRequest,
        background_tasks: BackgroundTasks,
    ) -> OperationAccepted:
        record = get_record(project_id)
        orchestrator = get_orchestrator(record)
        require_idle(record.id, orchestrator, "editing")
        if not orchestrator.has_generated_page():
            raise NoPagePlanError("Project has no generated page to edit")
        schedule(background_tasks, run_edit, record.id, request.prompt, orchestrator)
        return OperationAccepted(project_id=record.id, status=ProjectStatus.in_progress)

    @app.post(
        "/v1/projects/{project_id}/sections/{section_id}:regenerate",
        response_model=OperationAccepted,
        status_code=202,
    )
    async def regenerate_section(
        project_id: str,
        section_id: str,
        request: RegenerateSectionRequest,
        background_tasks: BackgroundTasks,
    ) -> OperationAccepted:
        record = get_record(project_id)
        orchestrator = get_orchestrator(record)
        require_idle(record.id, orchestrator, "generating")
        plan = orchestrator.page_state.plan
        if plan is None:
            raise NoPagePlanError("Project has no page plan yet")
        if plan.section(section_id) is None:
            raise SectionNotFoundError(section_id)
        schedule(
            background_tasks,
            run_regeneration,
            record.id,
            section_id,
            request.prompt or record.prompt,
            orchestrator,
        )
        return OperationAccepted(project_id=record.id, status=ProjectStatus.in_progress)

    @app.get("/v1/projects/{project_id}/download")
    async def download_project(project_id: str) -> Response:
        record = get_record(project_id)
        if not record.files.html:
            raise HTTPException(status_code=409, detail="Project has no generated page yet")
        return Response(
            content=build_zip(record.files),
            media_type="application/zip",
            headers={"Content-Disposition": f'attachment; filename="{record.id}.zip"'},
        )

    @app.exception_handler(SectionNotFoundError)
    async def section_not_found(_request, exc: SectionNotFoundError) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=404)

    @app.exception_handler(OperationInProgressError)
    async def operation_in_progress(_request, exc: OperationInProgressError) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=409)

    @app.exception_handler(ConfigurationError)
    async def configuration_error(_request, exc: ConfigurationError) -> JSONResponse:
        logger.error("Service is not configured", extra={"error": str(exc)})
        return JSONResponse({"detail": str(exc)}, status_code=503)

    @app.exception_handler(NoPagePlanError)
    async def no_page_plan(_request, exc: NoPagePlanError) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=409)

    @app.get("/health")
    async def healthcheck() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    return app


__all__ = [
    "create_app",
    "ProjectResponse",
    "OperationAccepted",
    "generation_summary",
    "edit_summary",
    "run_generation",
    "run_edit",
    "run_regeneration",
]
