"""FastAPI app entrypoint for crm-assistant."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from crm_assistant.api.models import (
    AddTaskRequest,
    ChatMessageRequest,
    ChatReplyView,
    ChatSessionView,
    MoveDealRequest,
)
from crm_assistant.chat.extraction import GeminiIntentExtractor, IntentExtractor
from crm_assistant.chat.pipeline import PipelineBusyError
from crm_assistant.chat.sessions import ChatSession, ChatSessionRegistry
from crm_assistant.config.settings import Settings, get_settings
from crm_assistant.crm import views
from crm_assistant.crm.workspace import CrmWorkspace, WorkspaceRegistry
from crm_assistant.storage.base import RecordNotFoundError, RecordStore
from crm_assistant.storage.memory import InMemoryRecordStore
from crm_assistant.storage.models import (
    Contact,
    ContactFields,
    Deal,
    DealFields,
    NotificationPreferences,
    Profile,
    Project,
    ProjectFields,
)
from crm_assistant.storage.postgres import PostgresRecordStore

logger = logging.getLogger(__name__)


def _build_store(settings: Settings) -> RecordStore:
    if settings.storage_backend == "memory":
        return InMemoryRecordStore()
    database_url = settings.resolved_database_url()
    if not database_url:
        raise RuntimeError(
            "Missing database URL. Set CRM_ASSISTANT_DATABASE_URL "
            "or CRM_DATABASE_URL before starting the app."
        )
    return PostgresRecordStore(database_url)


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    storage_override: RecordStore | None,
    extractor_override: IntentExtractor | None,
) -> None:
    if not hasattr(app.state, "settings"):
        app.state.settings = settings

    if not hasattr(app.state, "storage"):
        app.state.storage = storage_override or _build_store(settings)
        app.state.storage.migrate()

    if not hasattr(app.state, "workspaces"):
        app.state.workspaces = WorkspaceRegistry(app.state.storage, app_id=settings.app_id)

    if not hasattr(app.state, "extractor"):
        app.state.extractor = extractor_override or GeminiIntentExtractor(
            api_key=settings.resolved_gemini_api_key(),
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout_s=settings.llm_timeout_s,
        )

    if not hasattr(app.state, "chat_sessions"):
        app.state.chat_sessions = ChatSessionRegistry(app.state.extractor)


def create_app(
    *,
    storage: RecordStore | None = None,
    extractor: IntentExtractor | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure_runtime_state(
            app,
            settings=settings,
            storage_override=storage,
            extractor_override=extractor,
        )
        yield
        app.state.workspaces.close()
        if isinstance(app.state.extractor, GeminiIntentExtractor):
            await app.state.extractor.aclose()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    # Keep test paths reliable when lifespan is not executed by the client.
    if storage is not None:
        _ensure_runtime_state(
            app,
            settings=settings,
            storage_override=storage,
            extractor_override=extractor,
        )

    def _workspace(request: Request, user_id: str | None) -> CrmWorkspace:
        if not hasattr(request.app.state, "workspaces"):
            _ensure_runtime_state(
                request.app,
                settings=settings,
                storage_override=storage,
                extractor_override=extractor,
            )
        resolved_user = (user_id or "").strip() or settings.default_user_id
        if not resolved_user:
            raise HTTPException(status_code=401, detail="Missing user identity")
        return request.app.state.workspaces.get(resolved_user)

    def _session(request: Request, session_id: str, workspace: CrmWorkspace) -> ChatSession:
        session = request.app.state.chat_sessions.get(session_id, user_id=workspace.user_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Chat session not found")
        return session

    def _project(workspace: CrmWorkspace, project_id: str) -> Project:
        for project in workspace.projects:
            if project.id == project_id:
                return project
        raise HTTPException(status_code=404, detail="Project not found")

    def _require_task(project: Project, task_id: str) -> None:
        if not any(task.id == task_id for task in project.tasks):
            raise HTTPException(status_code=404, detail="Task not found")

    @app.exception_handler(RecordNotFoundError)
    async def record_not_found(_request: Request, exc: RecordNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": "Record not found"})

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/dashboard", response_model=views.DashboardSummary)
    def dashboard(
        request: Request, x_user_id: str | None = Header(default=None)
    ) -> views.DashboardSummary:
        workspace = _workspace(request, x_user_id)
        return views.build_dashboard(workspace.contacts, workspace.deals, workspace.projects)

    # Contacts

    @app.get("/contacts", response_model=list[Contact])
    def list_contacts(
        request: Request, q: str = "", x_user_id: str | None = Header(default=None)
    ) -> list[Contact]:
        workspace = _workspace(request, x_user_id)
        return views.filter_contacts(workspace.contacts, q)

    @app.post("/contacts", response_model=Contact)
    async def create_contact(
        payload: ContactFields, request: Request, x_user_id: str | None = Header(default=None)
    ) -> Contact:
        workspace = _workspace(request, x_user_id)
        data = payload.model_dump()
        record_id = await workspace.add_contact(data)
        return Contact(id=record_id, **data)

    @app.patch("/contacts/{contact_id}", status_code=204)
    async def patch_contact(
        contact_id: str,
        payload: ContactFields,
        request: Request,
        x_user_id: str | None = Header(default=None),
    ) -> None:
        workspace = _workspace(request, x_user_id)
        await workspace.update_contact(contact_id, payload.model_dump(exclude_unset=True))

    @app.delete("/contacts/{contact_id}", status_code=204)
    async def delete_contact(
        contact_id: str, request: Request, x_user_id: str | None = Header(default=None)
    ) -> None:
        workspace = _workspace(request, x_user_id)
        await workspace.delete_contact(contact_id)

    # Deals and pipeline board

    @app.get("/deals", response_model=list[Deal])
    def list_deals(request: Request, x_user_id: str | None = Header(default=None)) -> list[Deal]:
        return _workspace(request, x_user_id).deals

    @app.get("/pipeline", response_model=dict[str, list[Deal]])
    def pipeline_board(
        request: Request, x_user_id: str | None = Header(default=None)
    ) -> dict[str, list[Deal]]:
        return views.deals_by_stage(_workspace(request, x_user_id).deals)

    @app.post("/deals", response_model=Deal)
    async def create_deal(
        payload: DealFields, request: Request, x_user_id: str | None = Header(default=None)
    ) -> Deal:
        workspace = _workspace(request, x_user_id)
        data = payload.model_dump()
        record_id = await workspace.add_deal(data)
        return Deal(id=record_id, **data)

    @app.patch("/deals/{deal_id}", status_code=204)
    async def patch_deal(
        deal_id: str,
        payload: DealFields,
        request: Request,
        x_user_id: str | None = Header(default=None),
    ) -> None:
        workspace = _workspace(request, x_user_id)
        await workspace.update_deal(deal_id, payload.model_dump(exclude_unset=True))

    @app.post("/deals/{deal_id}/move", status_code=204)
    async def move_deal(
        deal_id: str,
        payload: MoveDealRequest,
        request: Request,
        x_user_id: str | None = Header(default=None),
    ) -> None:
        workspace = _workspace(request, x_user_id)
        deal = next((item for item in workspace.deals if item.id == deal_id), None)
        if deal is None:
            raise HTTPException(status_code=404, detail="Deal not found")
        if not views.can_move_deal(deal.stage, payload.stage):
            logger.info(
                "pipeline event=invalid_transition deal_id=%s from=%s to=%s",
                deal_id,
                deal.stage,
                payload.stage,
            )
            raise HTTPException(status_code=409, detail="Invalid stage transition")
        await workspace.update_deal(deal_id, {"stage": payload.stage})

    @app.delete("/deals/{deal_id}", status_code=204)
    async def delete_deal(
        deal_id: str, request: Request, x_user_id: str | None = Header(default=None)
    ) -> None:
        await _workspace(request, x_user_id).delete_deal(deal_id)

    # Projects and their tasks

    @app.get("/projects", response_model=list[Project])
    def list_projects(
        request: Request, x_user_id: str | None = Header(default=None)
    ) -> list[Project]:
        return _workspace(request, x_user_id).projects

    @app.post("/projects", response_model=Project)
    async def create_project(
        payload: ProjectFields, request: Request, x_user_id: str | None = Header(default=None)
    ) -> Project:
        workspace = _workspace(request, x_user_id)
        data = payload.model_dump()
        record_id = await workspace.add_project(data)
        return Project(id=record_id, **data)

    @app.patch("/projects/{project_id}", status_code=204)
    async def patch_project(
        project_id: str,
        payload: ProjectFields,
        request: Request,
        x_user_id: str | None = Header(default=None),
    ) -> None:
        workspace = _workspace(request, x_user_id)
        await workspace.update_project(project_id, payload.model_dump(exclude_unset=True))

    @app.delete("/projects/{project_id}", status_code=204)
    async def delete_project(
        project_id: str, request: Request, x_user_id: str | None = Header(default=None)
    ) -> None:
        await _workspace(request, x_user_id).delete_project(project_id)

    @app.post("/projects/{project_id}/tasks", response_model=Project)
    async def add_task(
        project_id: str,
        payload: AddTaskRequest,
        request: Request,
        x_user_id: str | None = Header(default=None),
    ) -> Project:
        workspace = _workspace(request, x_user_id)
        project = _project(workspace, project_id)
        tasks = views.append_task(project.tasks, payload.name.strip())
        return await _save_tasks(workspace, project, tasks)

    @app.post("/projects/{project_id}/tasks/{task_id}/toggle", response_model=Project)
    async def toggle_task(
        project_id: str,
        task_id: str,
        request: Request,
        x_user_id: str | None = Header(default=None),
    ) -> Project:
        workspace = _workspace(request, x_user_id)
        project = _project(workspace, project_id)
        _require_task(project, task_id)
        return await _save_tasks(workspace, project, views.toggle_task(project.tasks, task_id))

    @app.delete("/projects/{project_id}/tasks/{task_id}", response_model=Project)
    async def remove_task(
        project_id: str,
        task_id: str,
        request: Request,
        x_user_id: str | None = Header(default=None),
    ) -> Project:
        workspace = _workspace(request, x_user_id)
        project = _project(workspace, project_id)
        _require_task(project, task_id)
        return await _save_tasks(workspace, project, views.remove_task(project.tasks, task_id))

    # Settings

    @app.get("/settings/profile", response_model=Profile)
    async def get_profile(request: Request, x_user_id: str | None = Header(default=None)):
        return await _workspace(request, x_user_id).load_settings("profile")

    @app.put("/settings/profile", response_model=Profile)
    async def save_profile(
        payload: Profile, request: Request, x_user_id: str | None = Header(default=None)
    ):
        workspace = _workspace(request, x_user_id)
        return await workspace.save_settings("profile", payload.model_dump(exclude_unset=True))

    @app.get("/settings/notifications", response_model=NotificationPreferences)
    async def get_notifications(request: Request, x_user_id: str | None = Header(default=None)):
        return await _workspace(request, x_user_id).load_settings("notifications")

    @app.put("/settings/notifications", response_model=NotificationPreferences)
    async def save_notifications(
        payload: NotificationPreferences,
        request: Request,
        x_user_id: str | None = Header(default=None),
    ):
        workspace = _workspace(request, x_user_id)
        return await workspace.save_settings(
            "notifications", payload.model_dump(exclude_unset=True)
        )

    # Chat assistant

    @app.post("/chat/sessions", response_model=ChatSessionView)
    def open_chat_session(
        request: Request, x_user_id: str | None = Header(default=None)
    ) -> ChatSessionView:
        workspace = _workspace(request, x_user_id)
        session = request.app.state.chat_sessions.open(workspace)
        logger.info(
            "chat_session event=opened session_id=%s user_id=%s",
            session.session_id,
            session.user_id,
        )
        return _session_view(session)

    @app.get("/chat/sessions/{session_id}", response_model=ChatSessionView)
    def get_chat_session(
        session_id: str, request: Request, x_user_id: str | None = Header(default=None)
    ) -> ChatSessionView:
        workspace = _workspace(request, x_user_id)
        return _session_view(_session(request, session_id, workspace))

    @app.post("/chat/sessions/{session_id}/messages", response_model=ChatReplyView)
    async def post_chat_message(
        session_id: str,
        payload: ChatMessageRequest,
        request: Request,
        x_user_id: str | None = Header(default=None),
    ) -> ChatReplyView:
        workspace = _workspace(request, x_user_id)
        session = _session(request, session_id, workspace)
        try:
            reply = await session.pipeline.submit_utterance(payload.text)
        except PipelineBusyError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        view = _session_view(session)
        return ChatReplyView(**view.model_dump(), reply=reply)

    @app.delete("/chat/sessions/{session_id}", status_code=204)
    def close_chat_session(
        session_id: str, request: Request, x_user_id: str | None = Header(default=None)
    ) -> None:
        workspace = _workspace(request, x_user_id)
        if not request.app.state.chat_sessions.close(session_id, user_id=workspace.user_id):
            raise HTTPException(status_code=404, detail="Chat session not found")

    return app


async def _save_tasks(workspace: CrmWorkspace, project: Project, tasks) -> Project:
    await workspace.update_project(project.id, {"tasks": [task.model_dump() for task in tasks]})
    return project.model_copy(update={"tasks": list(tasks)})


def _session_view(session: ChatSession) -> ChatSessionView:
    pipeline = session.pipeline
    return ChatSessionView(
        session_id=session.session_id,
        stage=pipeline.stage,
        pending=pipeline.is_pending,
        transcript=list(pipeline.transcript),
    )


app = create_app()
