"""Read-only web dashboard API over run artifacts."""

from pathlib import Path

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse
from starlette.routing import Route

from ob1.config import get_config
from ob1.core import runs as runs_mod
from ob1.web.dashboard import get_dashboard_html


def _runs_dir(request: Request) -> Path:
    return request.app.state.runs_dir


# ── Handlers ──────────────────────────────────────────────────────────────────


async def index(request: Request):
    return HTMLResponse(get_dashboard_html())


async def api_list_runs(request: Request):
    limit = request.query_params.get("limit")
    try:
        limit = int(limit) if limit else None
    except ValueError:
        return JSONResponse({"error": "limit must be an integer"}, status_code=400)
    runs = runs_mod.list_runs(_runs_dir(request), limit=limit)
    return JSONResponse([r.to_dict() for r in runs])


async def api_get_run(request: Request):
    run_id = request.path_params["run_id"]
    record = runs_mod.get_run(_runs_dir(request), run_id)
    if not record:
        return JSONResponse({"error": "Run not found"}, status_code=404)

    data = record.to_dict()
    summary = runs_mod.load_summary(record.run_root)
    data["summary"] = summary.to_dict() if summary else None
    return JSONResponse(data)


async def api_run_events(request: Request):
    run_id = request.path_params["run_id"]
    record = runs_mod.get_run(_runs_dir(request), run_id)
    if not record:
        return JSONResponse({"error": "Run not found"}, status_code=404)
    return JSONResponse(runs_mod.load_events(record.run_root))


# ── App ───────────────────────────────────────────────────────────────────────


def create_app(runs_dir: Path | None = None) -> Starlette:
    routes = [
        Route("/", index),
        Route("/api/runs", api_list_runs),
        Route("/api/runs/{run_id}", api_get_run),
        Route("/api/runs/{run_id}/events", api_run_events),
    ]
    app = Starlette(routes=routes)
    app.state.runs_dir = Path(runs_dir) if runs_dir else get_config().runs_dir
    return app


def run_server(host: str = "127.0.0.1", port: int = 8787, runs_dir: Path | None = None):
    app = create_app(runs_dir)
    uvicorn.run(app, host=host, port=port)
