"""Runs dashboard HTML with inline CSS and vanilla JS."""


def get_dashboard_html() -> str:
    return """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>ob1 runs</title>
<style>
  :root {
    --bg: #0d1117; --surface: #161b22; --border: #30363d;
    --text: #e6edf3; --text-muted: #8b949e;
    --ok: #3fb950; --error: #f85149; --pending: #d29922; --link: #58a6ff;
  }
  * { margin: 0; padding: 0; box-sizing: border-box; }
  body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Helvetica, Arial, sans-serif;
         background: var(--bg); color: var(--text); line-height: 1.5; }
  .container { max-width: 1080px; margin: 0 auto; padding: 24px 16px;
               display: grid; grid-template-columns: 320px 1fr; gap: 20px; }
  header { grid-column: 1 / -1; padding-bottom: 16px; border-bottom: 1px solid var(--border); }
  header h1 { font-size: 20px; font-weight: 600; }
  code { background: var(--bg); padding: 2px 6px; border-radius: 4px; font-size: 12px; }
  a { color: var(--link); }

  .run-list { display: flex; flex-direction: column; gap: 4px; }
  .run-item { background: var(--surface); border: 1px solid var(--border); border-radius: 8px;
              padding: 10px 12px; cursor: pointer; font-size: 13px; }
  .run-item.active { border-color: var(--link); }
  .run-item .msg { color: var(--text-muted); white-space: nowrap; overflow: hidden; text-overflow: ellipsis; }

  .badge { display: inline-block; padding: 2px 10px; border-radius: 12px; font-size: 11px;
           font-weight: 600; text-transform: uppercase; letter-spacing: 0.5px; }
  .badge.ok { background: rgba(63,185,80,0.15); color: var(--ok); }
  .badge.error { background: rgba(248,81,73,0.15); color: var(--error); }
  .badge.pending { background: rgba(210,153,34,0.15); color: var(--pending); }

  .agent-card { background: var(--surface); border: 1px solid var(--border); border-radius: 8px;
                padding: 12px 16px; margin-bottom: 8px; font-size: 13px; }
  .agent-card h3 { font-size: 14px; margin-bottom: 6px; display: flex; gap: 10px; align-items: center; }
  .agent-card div { color: var(--text-muted); }
  .events { font-family: ui-monospace, SFMono-Regular, Menlo, monospace; font-size: 12px;
            color: var(--text-muted); margin-top: 16px; }
  .empty { color: var(--text-muted); padding: 24px; text-align: center; }
</style>
</head>
<body>
<div class="container">
  <header><h1>ob1 runs</h1></header>
  <div class="run-list" id="runs"><div class="empty">Loading...</div></div>
  <div id="detail"><div class="empty">Select a run</div></div>
</div>
<script>
let currentRun = null;

function statusBadge(run) {
  if (!run.finished) return '<span class="badge pending">running</span>';
  return run.withError
    ? '<span class="badge error">failed</span>'
    : '<span class="badge ok">ok</span>';
}

async function loadRuns() {
  const res = await fetch('/api/runs');
  const runs = await res.json();
  const el = document.getElementById('runs');
  if (runs.length === 0) {
    el.innerHTML = '<div class="empty">No runs yet.</div>';
    return;
  }
  el.innerHTML = runs.map(r => `
    <div class="run-item ${r.runId === currentRun ? 'active' : ''}" onclick="selectRun('${esc(r.runId)}')">
      <div>${statusBadge(r)} <code>${esc(r.runId)}</code></div>
      <div class="msg">${esc(r.message || '')}</div>
    </div>`).join('');
}

async function selectRun(runId) {
  currentRun = runId;
  loadRuns();
  const [runRes, eventsRes] = await Promise.all([
    fetch(`/api/runs/${encodeURIComponent(runId)}`),
    fetch(`/api/runs/${encodeURIComponent(runId)}/events`),
  ]);
  const run = await runRes.json();
  const events = await eventsRes.json();
  renderDetail(run, events);
}

function renderDetail(run, events) {
  let html = `<p>${esc(run.message || '')}</p><br>`;
  const agents = run.summary ? run.summary.agents : [];
  if (agents.length === 0) {
    html += '<div class="empty">No summary written for this run.</div>';
  }
  for (const a of agents) {
    const badge = a.error
      ? '<span class="badge error">error</span>'
      : '<span class="badge ok">ok</span>';
    let details = `<div>Branch: <code>${esc(a.branch)}</code></div>`;
    details += `<div>Worktree: <code>${esc(a.worktreePath)}</code></div>`;
    if (a.commitId) details += `<div>Commit: <code>${esc(a.commitId.slice(0, 12))}</code></div>`;
    if (a.prUrl) details += `<div>PR: <a href="${esc(a.prUrl)}" target="_blank" rel="noopener">${esc(a.prUrl)}</a></div>`;
    if (a.fallbackFile) details += `<div>Fallback: <code>${esc(a.fallbackFile)}</code></div>`;
    if (a.error) details += `<div>Error: ${esc(a.error)}</div>`;
    html += `<div class="agent-card"><h3>${badge} ${esc(a.agent)}</h3>${details}</div>`;
  }
  html += '<div class="events">' + events.map(e =>
    `<div>${esc(e.timestamp)} ${esc(e.event)} ${esc(e.agent || '')}</div>`).join('') + '</div>';
  document.getElementById('detail').innerHTML = html;
}

function esc(s) {
  if (!s) return '';
  const d = document.createElement('div');
  d.textContent = s;
  return d.innerHTML;
}

loadRuns();
setInterval(() => {
  loadRuns();
  if (currentRun) selectRun(currentRun);
}, 10000);
</script>
</body>
</html>"""
