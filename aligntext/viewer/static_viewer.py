from __future__ import annotations

from pathlib import Path

import html
import json
import webbrowser

from ..analysis.alignment import AlignmentEngine
from ..pipelines.reader_session import format_status
from ..util.types import ExtractedWork


INDEX_HTML_TEMPLATE = """<!DOCTYPE html>
<html lang=\"en\">
<head>
  <meta charset=\"utf-8\" />
  <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
  <title>{title}</title>
  <link rel=\"stylesheet\" href=\"viewer.css\" />
</head>
<body>
  <div class=\"topbar\">
    <button id=\"btn-layout\">Layout</button>
    <button id=\"btn-swap\">Swap</button>
    <label>Scroll sync <select id=\"select-sync\"><option value=\"off\">Off</option><option value=\"proportional\">Proportional</option></select></label>
    <span id=\"status\" class=\"status\"></span>
  </div>
  <div id=\"main\">
    <div id=\"panels\" class=\"layout-horizontal\">
      <section class=\"panel\" id=\"panel-a\"><h2 id=\"title-a\"></h2><div class=\"content\" id=\"content-a\"></div></section>
      <div id=\"divider\"></div>
      <section class=\"panel\" id=\"panel-b\"><h2 id=\"title-b\"></h2><div class=\"content\" id=\"content-b\"></div></section>
    </div>
    <aside id=\"anchor-list\"></aside>
  </div>
  <script>window.__DATA__ = {data_json};</script>
  <script src=\"viewer.js\"></script>
</body>
</html>"""

VIEWER_CSS = """
body { font-family: system-ui, sans-serif; margin: 0; }
.topbar { display: flex; gap: 8px; align-items: center; padding: 8px; border-bottom: 1px solid #ddd; }
.status { margin-left: auto; font-size: 12px; color: #555; }
#main { display: flex; height: calc(100vh - 45px); }
#panels { flex: 1; display: flex; min-width: 0; }
#panels.layout-vertical { flex-direction: column; }
.panel { flex: 1; display: flex; flex-direction: column; min-width: 0; min-height: 0; }
.panel h2 { font-size: 14px; margin: 0; padding: 6px 10px; background: #f6f6f6; }
.content { flex: 1; overflow: auto; padding: 0 16px; }
#divider { width: 1px; background: #ddd; }
#panels.layout-vertical #divider { width: auto; height: 1px; }
#anchor-list { width: 220px; overflow: auto; border-left: 1px solid #ddd; font-size: 12px; padding: 6px; }
.paragraph { padding: 4px 6px; margin: 6px 0; border-radius: 4px; cursor: pointer; }
.paragraph.active-a { background: #e3f0ff; }
.paragraph.active-b { background: #fde8f3; }
.paragraph.anchored { border-left: 3px solid #e2a04a; }
.anchor-marker { font-size: 11px; color: #b8731c; margin-right: 4px; }
.anchor-item { padding: 4px; border-bottom: 1px solid #f0f0f0; cursor: pointer; }
.anchor-empty { color: #888; }
"""

VIEWER_JS = """
(function(){
const data = window.__DATA__;
const panels = document.getElementById('panels');
const contents = { a: document.getElementById('content-a'), b: document.getElementById('content-b') };
const maps = { a: data.mapping.map_a_to_b, b: data.mapping.map_b_to_a };
let syncMode = data.sync_mode;
let scrolling = false;
let scrollTimer = null;

function other(p){ return p === 'a' ? 'b' : 'a'; }
function blockEl(p, i){ return contents[p].querySelector(`[data-index="${i}"]`); }

function highlight(p, i){
  contents[p].querySelectorAll('.paragraph').forEach(el=>el.classList.remove('active-a','active-b'));
  const el = blockEl(p, i); if (el) el.classList.add('active-' + p);
}

function navigate(p, i){
  const t = other(p);
  const j = maps[p][i];
  if (j === undefined) return;
  highlight(p, i); highlight(t, j);
  const el = blockEl(t, j); if (el) el.scrollIntoView({behavior:'smooth', block:'center'});
}

function render(p, work){
  document.getElementById('title-' + p).textContent = work.title || ('Text ' + p.toUpperCase());
  const c = contents[p];
  c.innerHTML = '';
  if (!work.blocks.length){ c.innerHTML = '<p>No content found.</p>'; return; }
  work.blocks.forEach(b=>{
    const el = document.createElement('div');
    el.className = 'paragraph type-' + b.type;
    el.dataset.index = b.i;
    el.innerHTML = b.type === 'break' ? '<hr>' : (b.html || b.text);
    el.addEventListener('click', ()=>navigate(p, b.i));
    c.appendChild(el);
  });
}

function markAnchors(){
  const list = document.getElementById('anchor-list');
  if (!data.anchors.length){ list.innerHTML = '<div class="anchor-empty">No anchors set.</div>'; return; }
  list.innerHTML = '';
  data.anchors.forEach((a, k)=>{
    [['a', a.index_a], ['b', a.index_b]].forEach(([p, i])=>{
      const el = blockEl(p, i); if (!el) return;
      el.classList.add('anchored');
      const m = document.createElement('span'); m.className = 'anchor-marker'; m.textContent = '⚓' + (k + 1);
      el.insertBefore(m, el.firstChild);
    });
    const item = document.createElement('div');
    item.className = 'anchor-item';
    item.textContent = `⚓ Anchor ${k + 1}: A:¶${a.index_a + 1} ↔ B:¶${a.index_b + 1}`;
    item.addEventListener('click', ()=>{
      const ea = blockEl('a', a.index_a), eb = blockEl('b', a.index_b);
      if (ea) ea.scrollIntoView({behavior:'smooth', block:'center'});
      if (eb) eb.scrollIntoView({behavior:'smooth', block:'center'});
      highlight('a', a.index_a); highlight('b', a.index_b);
    });
    list.appendChild(item);
  });
}

function activeFromScroll(p){
  const c = contents[p];
  const center = c.scrollTop + c.clientHeight / 2;
  const box = c.getBoundingClientRect();
  let best = 0, bestDist = Infinity;
  c.querySelectorAll('.paragraph').forEach((el, idx)=>{
    const r = el.getBoundingClientRect();
    const mid = (r.top - box.top) + c.scrollTop + r.height / 2;
    const d = Math.abs(mid - center);
    if (d < bestDist){ bestDist = d; best = idx; }
  });
  const j = maps[p][best];
  if (j === undefined) return;
  highlight(p, best); highlight(other(p), j);
}

function onScroll(p){
  if (syncMode === 'off' || scrolling) return;
  scrolling = true;
  const s = contents[p], t = contents[other(p)];
  const h = s.scrollHeight - s.clientHeight;
  const ratio = h > 0 ? s.scrollTop / h : 0;
  t.scrollTop = ratio * (t.scrollHeight - t.clientHeight);
  activeFromScroll(p);
  clearTimeout(scrollTimer);
  scrollTimer = setTimeout(()=>{ scrolling = false; }, 50);
}

document.getElementById('btn-layout').addEventListener('click', ()=>{
  panels.classList.toggle('layout-horizontal');
  panels.classList.toggle('layout-vertical');
});
document.getElementById('btn-swap').addEventListener('click', ()=>{
  const pa = document.getElementById('panel-a'), pb = document.getElementById('panel-b');
  const first = panels.querySelector('.panel');
  panels.insertBefore(first === pa ? pb : pa, first);
  panels.querySelector('.panel').after(document.getElementById('divider'));
});
const sel = document.getElementById('select-sync');
sel.value = syncMode;
sel.addEventListener('change', e=>{ syncMode = e.target.value; });
contents.a.addEventListener('scroll', ()=>onScroll('a'));
contents.b.addEventListener('scroll', ()=>onScroll('b'));

if (data.layout === 'vertical') { panels.classList.remove('layout-horizontal'); panels.classList.add('layout-vertical'); }
render('a', data.works[0]);
render('b', data.works[1]);
markAnchors();
if (data.swapped) document.getElementById('btn-swap').click();
document.getElementById('status').textContent = data.status + ' · ' + data.mapping.mode;
})();
"""


def _work_payload(work: ExtractedWork) -> dict:
	return {
		"title": work.title,
		"blocks": [
			{"i": b.index, "type": b.block_type, "html": b.html, "text": b.text}
			for b in work.blocks
		],
	}


def generate_aligned_preview(
	work_a: ExtractedWork,
	work_b: ExtractedWork,
	engine: AlignmentEngine,
	out_dir: Path,
	*,
	title: str = "Aligned Reader",
	layout: str = "horizontal",
	sync_mode: str = "proportional",
	swapped: bool = False,
	status: str | None = None,
	open_browser: bool = False,
) -> dict:
	"""Generate a static two-panel viewer in out_dir for an aligned work pair.

	The engine's current mapping and anchors are embedded, so clicking a block
	jumps to the same counterpart ``AlignmentEngine.map_index`` returns.
	Pass ``status`` to show a session's status line; it defaults to the anchor count.
	Returns a small dict with the output path and block counts.
	"""
	if (engine.len_a, engine.len_b) != (len(work_a.blocks), len(work_b.blocks)):
		raise ValueError(
			f"Engine lengths ({engine.len_a}, {engine.len_b}) do not match works "
			f"({len(work_a.blocks)}, {len(work_b.blocks)})"
		)
	count = engine.anchor_count()
	data_obj = {
		"title": title,
		"layout": layout,
		"sync_mode": sync_mode,
		"swapped": swapped,
		"status": status if status is not None else format_status(count),
		"works": [_work_payload(work_a), _work_payload(work_b)],
		"anchors": [{"index_a": a.index_a, "index_b": a.index_b} for a in engine.anchors],
		"mapping": engine.mapping.to_dict(),
	}

	out_dir.mkdir(parents=True, exist_ok=True)
	(out_dir / "data.json").write_text(json.dumps(data_obj, ensure_ascii=False, indent=2), encoding="utf-8")
	# Inline copy for file:// loads; "</" is escaped inside the script tag
	inline_json = json.dumps(data_obj).replace("</", "<\\/")
	(out_dir / "index.html").write_text(INDEX_HTML_TEMPLATE.format(title=html.escape(title), data_json=inline_json), encoding="utf-8")
	(out_dir / "viewer.css").write_text(VIEWER_CSS, encoding="utf-8")
	(out_dir / "viewer.js").write_text(VIEWER_JS, encoding="utf-8")

	if open_browser:
		webbrowser.open((out_dir / "index.html").absolute().as_uri())

	return {"out": str(out_dir), "blocks_a": len(work_a.blocks), "blocks_b": len(work_b.blocks), "anchors": count}
