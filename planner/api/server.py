"""
FastAPI server for the planner API. Run with run_api_server(app) in a background thread.
Central endpoints: GET /api/components, GET /api/tasks, POST /api/tasks/{name}/run.
Per-plugin routes are mounted from planner.plugins.<package>.api (get_router(planner_app))
under /api/components/<package>/.
Docs when enabled: http://<host>:<port>/docs
"""
import importlib
import logging
import pkgutil
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from planner.core.errors import RecordNotFoundError
from planner.core.models import list_task_schedules

logger = logging.getLogger(__name__)

# Keys to exclude from component config in API (secrets)
_CONFIG_SECRET_KEYS = frozenset(
    {"api_key", "password", "smtp_password", "token", "secret", "credentials", "client_secret"}
)


def _safe_component_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Return config with secret keys omitted."""
    if not config:
        return {}
    return {k: v for k, v in config.items() if k.lower() not in _CONFIG_SECRET_KEYS}


def _serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Serialize datetime to ISO string (UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def create_app(planner_app: Any) -> FastAPI:
    """Create FastAPI app with routes that use the given PlannerApp instance."""
    app = FastAPI(title="Academic Planner API", description="Assignments, notifications and email digests")

    @app.exception_handler(RecordNotFoundError)
    async def not_found(request: Request, exc: RecordNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def invalid_input(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.get("/api/components")
    def list_components() -> List[Dict[str, Any]]:
        """List registered tasks with enabled state and safe config."""
        components_data = []
        comp_config = planner_app.config.data.get("components") or {}
        for name in planner_app.plugin_manager.tasks:
            config = comp_config.get(name) or {}
            enabled = config.get("enable", False) if isinstance(config, dict) else False
            components_data.append({
                "name": name,
                "enabled": enabled,
                "scheduled": name in planner_app.tasks,
                "config": _safe_component_config(config) if isinstance(config, dict) else {},
            })
        return components_data

    @app.get("/api/tasks")
    def list_tasks() -> Dict[str, Any]:
        """List scheduled tasks: DB schedules and active in-memory timers."""
        db_schedules = [row.as_dict() for row in list_task_schedules()]
        for row in db_schedules:
            row["next_run_at"] = _serialize_datetime(row.get("next_run_at"))
            row["last_run_at"] = _serialize_datetime(row.get("last_run_at"))

        active_list = [
            {"name": t["name"], "next_run_at": _serialize_datetime(t["next_run_at"])}
            for t in planner_app.task_manager.get_active_timers()
        ]
        return {"db_schedules": db_schedules, "active_timers": active_list}

    @app.post("/api/tasks/{name}/run")
    def run_task(name: str) -> Dict[str, Any]:
        """Run an enabled task once, synchronously, and return its result."""
        task = planner_app.tasks.get(name)
        if task is None:
            raise HTTPException(status_code=404, detail=f"Task not scheduled: {name}")
        config = planner_app.config.get_component_config(name) or {}
        planner_app.task_manager.run_task_now(name, config, planner_app.config.data)
        planner_app.drain_results()
        return {"name": name, "result": planner_app.last_results.get(name)}

    # Mount per-plugin API routers from planner.plugins.<name>.api (get_router(planner_app))
    try:
        plugins_pkg = importlib.import_module("planner.plugins")
        for _mod, name, is_pkg in pkgutil.iter_modules(plugins_pkg.__path__):
            if not is_pkg:
                continue
            try:
                api_module = importlib.import_module(f"planner.plugins.{name}.api")
            except ImportError:
                continue
            if not hasattr(api_module, "get_router") or not callable(api_module.get_router):
                continue
            try:
                router = api_module.get_router(planner_app)
                if router is not None:
                    app.include_router(router, prefix=f"/api/components/{name}")
            except Exception as e:
                logger.warning(f"Failed to mount API router for plugin {name}: {e}", exc_info=True)
    except Exception as e:
        logger.warning(f"Plugin API discovery failed: {e}", exc_info=True)

    return app


def run_api_server(planner_app: Any) -> None:
    """
    Start the API server in a daemon thread if api.enabled is true.
    Reads api.host (default 127.0.0.1) and api.port (default 8765) from config.
    """
    api_config = planner_app.config.data.get("api") or {}
    enabled = api_config.get("enabled", False)
    logger.info(f"API config: enabled={enabled}, config_file={planner_app.config.config_file}")
    if not enabled:
        logger.info("API server not started: set api.enabled to true in your config file to enable.")
        return
    host = api_config.get("host", "127.0.0.1")
    port = int(api_config.get("port", 8765))
    fastapi_app = create_app(planner_app)

    def run_uvicorn():
        try:
            import uvicorn
            logger.info(f"API server listening at http://{host}:{port} (docs at /docs)")
            uvicorn.run(fastapi_app, host=host, port=port)
        except Exception as e:
            logger.exception(f"API server thread failed: {e}")

    thread = threading.Thread(target=run_uvicorn, daemon=True)
    thread.start()
    logger.info("API server thread started.")
