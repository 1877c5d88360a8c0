from fastapi import FastAPI

from node_admin.api.routes.agents import router as agents_router
from node_admin.api.routes.flags import router as flags_router
from node_admin.api.routes.host import router as host_router
from node_admin.core.events import RecordingEventEmitter
from node_admin.orchestrator.host_orchestrator import HostOrchestrator


def create_app(orchestrator: HostOrchestrator, recorder: RecordingEventEmitter) -> FastAPI:
    app = FastAPI(title="Node Admin API")
    app.state.orchestrator = orchestrator
    app.state.recorder = recorder

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(agents_router)
    app.include_router(host_router)
    app.include_router(flags_router)
    return app
