from __future__ import annotations

from functools import lru_cache

from landing_page_builder.api import create_app
from landing_page_builder.config import Settings
from landing_page_builder.firestore_project_store import FirestoreProjectStore
from landing_page_builder.logging_config import setup_logging
from landing_page_builder.orchestrator import PageOrchestrator
from landing_page_builder.project_store import ProjectStore
from landing_page_builder.vertex_ai_adapter import VertexAIAdapter

# Environment configuration
settings = Settings.from_env()

# Setup logging
setup_logging(environment=settings.environment, project_id=settings.project_id)

# Use Firestore in production, in-memory for dev
if settings.environment == "dev":
    project_store = ProjectStore()
else:
    project_store = FirestoreProjectStore(project_id=settings.project_id)


@lru_cache(maxsize=1)
def generation_client() -> VertexAIAdapter:
    # Built on first use so a missing PROJECT_ID surfaces as a 503 with its message.
    return VertexAIAdapter.from_settings(settings)


def orchestrator_factory() -> PageOrchestrator:
    return PageOrchestrator.from_settings(settings, client=generation_client())


app = create_app(project_store=project_store, orchestrator_factory=orchestrator_factory)
