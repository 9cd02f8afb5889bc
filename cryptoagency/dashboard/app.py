"""Dashboard: FastAPI + WebSocket feedback console.

`cryptoagency dashboard` serves this at localhost:8430. It exposes the
bench's visualization data and strategic feedback, lets a human rate
suggestions, kicks off bench runs and streams bus events live.
"""

from __future__ import annotations

import logging
import time

from fastapi import BackgroundTasks, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from cryptoagency import __version__
from cryptoagency.bench import TEST_TYPES, AgencyBench
from cryptoagency.events.bus import Event, EventBus
from cryptoagency.exceptions import InvalidFeedbackError, SuggestionNotFoundError

_logger = logging.getLogger(__name__)

dashboard_app = FastAPI(title="cryptoagency dashboard", version=__version__)

_bench: AgencyBench | None = None
_event_bus: EventBus | None = None
_daemon = None
_start_time = time.time()


def configure(bench: AgencyBench | None = None, event_bus: EventBus | None = None,
              daemon=None) -> None:
    global _bench, _event_bus, _daemon
    _bench = bench
    _event_bus = event_bus
    _daemon = daemon


def _require_bench() -> AgencyBench:
    if _bench is None:
        raise HTTPException(status_code=503, detail="Bench not configured")
    return _bench


class FeedbackPayload(BaseModel):
    suggestion_id: int
    feedback: str
    score: int


class RunTestPayload(BaseModel):
    test_type: str
    rounds: int = Field(default=3, ge=1, le=100)


# ── Read endpoints ───────────────────────────────────────────────

@dashboard_app.get("/")
async def index() -> HTMLResponse:
    return HTMLResponse(_DASHBOARD_HTML)


@dashboard_app.get("/api/status")
async def system_status() -> dict:
    bench = _bench.status() if _bench else {}
    return {
        "version": __version__,
        "bench": bench,
        "daemon_running": _daemon.is_running if _daemon else False,
        "daemon_cycles": len(_daemon.history) if _daemon else 0,
        "event_subscribers": _event_bus.subscriber_count if _event_bus else 0,
        "ws_connections": _event_bus.ws_connection_count if _event_bus else 0,
        "uptime_s": int(time.time() - _start_time),
    }


@dashboard_app.get("/api/visualization-data")
async def visualization_data(limit: int = 100) -> dict:
    return await _require_bench().visualization_data(limit)


@dashboard_app.get("/api/strategic-feedback")
async def strategic_feedback() -> dict:
    feedback = await _require_bench().strategic_feedback()
    return feedback.model_dump(mode="json")


@dashboard_app.get("/api/suggestions")
async def list_suggestions(limit: int = 50) -> list[dict]:
    return await _require_bench().database.get_recent_suggestions(limit)


@dashboard_app.get("/api/events")
async def list_events(topic: str = "*", limit: int = 50) -> list[dict]:
    if _event_bus is None:
        return []
    events = _event_bus.history(topic_filter=topic, limit=limit)
    return [e.model_dump(mode="json") for e in events]


# ── Write endpoints ──────────────────────────────────────────────

@dashboard_app.post("/api/feedback")
async def submit_feedback(payload: FeedbackPayload) -> dict:
    bench = _require_bench()
    try:
        await bench.collect_feedback(payload.suggestion_id, payload.feedback, payload.score)
    except InvalidFeedbackError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SuggestionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"ok": True, "suggestion_id": payload.suggestion_id}


@dashboard_app.post("/api/run-test")
async def run_test(payload: RunTestPayload, background: BackgroundTasks) -> dict:
    bench = _require_bench()
    if payload.test_type not in TEST_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown test type {payload.test_type!r}; expected one of {', '.join(TEST_TYPES)}",
        )
    background.add_task(_run_in_background, bench, payload.test_type, payload.rounds)
    return {"ok": True, "test_type": payload.test_type, "rounds": payload.rounds,
            "session_id": bench.session_id}


async def _run_in_background(bench: AgencyBench, test_type: str, rounds: int) -> None:
    try:
        await bench.run(test_type, rounds=rounds)
    except Exception as e:
        _logger.error("Background bench run %s failed: %s", test_type, e)


# ── WebSocket: live event stream ────────────────────────────────

@dashboard_app.websocket("/ws/events")
async def ws_events(websocket: WebSocket) -> None:
    await websocket.accept()

    async def send_event(event: Event) -> None:
        await websocket.send_json(event.model_dump(mode="json"))

    if _event_bus:
        _event_bus.add_ws_connection(send_event)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        if _event_bus:
            _event_bus.remove_ws_connection(send_event)


_DASHBOARD_HTML = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>cryptoagency</title>
<style>
body { font-family: -apple-system, 'Segoe UI', sans-serif; background: #0a0e14; color: #d4dce8; margin: 24px; }
h1 { font-size: 20px; } h2 { font-size: 15px; color: #6b7a90; margin-top: 28px; }
table { border-collapse: collapse; width: 100%; font-size: 13px; }
td, th { border-bottom: 1px solid #232d3f; padding: 6px 8px; text-align: left; }
.high { color: #f85149; } .medium { color: #f5af19; } .low { color: #43e97b; }
button, select, input { background: #1a2030; color: #d4dce8; border: 1px solid #232d3f; padding: 4px 8px; }
#events { font-family: monospace; font-size: 12px; max-height: 240px; overflow-y: auto; }
</style>
</head>
<body>
<h1>cryptoagency</h1>
<div id="status"></div>
<p>
  <select id="testType"></select>
  <input id="rounds" type="number" value="3" min="1" style="width:60px">
  <button onclick="runTest()">Run</button>
  <span id="performance"></span>
</p>
<h2>Suggestions</h2>
<table><thead><tr><th>ID</th><th>Agent</th><th>Type</th><th>Conf</th><th>Urgency</th><th>Rationale</th><th>Score</th></tr></thead>
<tbody id="suggestions"></tbody></table>
<h2>Live events</h2>
<div id="events"></div>
<script>
const TEST_TYPES = ["autonomous-decision","strategic-oversight","alpha-discovery","inter-agent-communication","learning-adaptation","full-system"];
TEST_TYPES.forEach(t => { const o = document.createElement('option'); o.value = o.textContent = t; testType.appendChild(o); });

async function refresh() {
  const s = await (await fetch('/api/status')).json();
  status.textContent = `session ${s.bench.session_id || '-'} | tests ${s.bench.tests_run || 0} | daemon ${s.daemon_running ? 'on' : 'off'} | ws ${s.ws_connections}`;
  const rows = await (await fetch('/api/suggestions?limit=50')).json();
  suggestions.innerHTML = rows.map(r => `<tr><td>${r.id}</td><td>${r.agent_id}</td><td>${r.suggestion_type}</td>
    <td>${r.confidence.toFixed(2)}</td><td class="${r.urgency}">${r.urgency}</td><td>${(r.rationale || '').slice(0, 80)}</td>
    <td>${r.feedback_score ?? `<input size="2" id="score${r.id}"><button onclick="rate(${r.id})">rate</button>`}</td></tr>`).join('');
  const f = await (await fetch('/api/strategic-feedback')).json();
  performance.textContent = `overall performance ${f.overall_performance.toFixed(2)}`;
}

async function rate(id) {
  const score = parseInt(document.getElementById('score' + id).value, 10);
  const res = await fetch('/api/feedback', {method: 'POST', headers: {'Content-Type': 'application/json'},
    body: JSON.stringify({suggestion_id: id, feedback: 'rated from dashboard', score})});
  if (!res.ok) alert((await res.json()).detail);
  refresh();
}

async function runTest() {
  await fetch('/api/run-test', {method: 'POST', headers: {'Content-Type': 'application/json'},
    body: JSON.stringify({test_type: testType.value, rounds: parseInt(rounds.value, 10)})});
}

const ws = new WebSocket(`ws://${location.host}/ws/events`);
ws.onmessage = (msg) => {
  const e = JSON.parse(msg.data);
  const line = document.createElement('div');
  line.textContent = `${e.timestamp.slice(11, 19)} ${e.topic} ${e.source}`;
  events.prepend(line);
  if (e.topic === 'bench.test_completed' || e.topic === 'bench.feedback') refresh();
};
refresh();
</script>
</body>
</html>
"""
