"""Single-file web UI served at ``/``. No build step; talks to the REST API and ``/ws``."""

INDEX_HTML = """
<!doctype html>
<html lang="en" class="h-full">
<head>
  <meta charset="utf-8"/>
  <meta name="viewport" content="width=device-width,initial-scale=1"/>
  <title>Sticky Notes</title>
  <script src="https://cdn.tailwindcss.com"></script>
  <script>
    tailwind.config = { darkMode: 'class' };
  </script>
<style>
  .pill { padding: 2px 8px; border-radius: 999px; font-size: 12px; border: 1px solid #cbd5e1; }
  .btn { display: inline-flex; align-items: center; gap: 8px; padding: 6px 12px; border-radius: 12px;
         border: 1px solid #cbd5e1; background: #fff; transition: transform .1s ease; }
  .btn:hover { transform: translateY(-2px); }
  .btn:disabled { opacity: .4; transform: none; }
  .btn-primary { background: #0b5cff; color: #fff; border-color: #0b5cff; }
  .btn-warn { background: #ffe3e3; color: #111827; border-color: #fecaca; }
  .swatch { width: 22px; height: 22px; border-radius: 6px; border: 1px solid rgba(0,0,0,.15); }
  .swatch.active { outline: 2px solid #0b5cff; outline-offset: 2px; }
  .sticky { color: #1f2937; box-shadow: 0 2px 6px rgba(15,23,42,.15); border-radius: 4px; }
  #live.on { background: #22c55e; }
  #live { width: 8px; height: 8px; border-radius: 999px; background: #94a3b8; display: inline-block; }

  .dark body { color: #f8fafc; }
  .dark .btn, .dark .btn * { color: #fff !important; }
  .dark .btn { background-color: #0b1220; border-color: #334155; }
  .dark .btn-primary { background-color: #2563eb; border-color: #2563eb; }
  .dark .btn-warn { background-color: #e11d48; border-color: #e11d48; }
  .dark input, .dark textarea, .dark select { color: #fff; background-color: #0b1220; border-color: #334155; }
  .dark .pill { border-color: #334155; color: #e2e8f0; }
  .dark .sticky .pill { color: #1f2937; border-color: rgba(0,0,0,.2); }

  .markdown { line-height: 1.6; }
  .markdown h1 { font-size: 1.5rem; margin: 1rem 0 .5rem; }
  .markdown h2 { font-size: 1.25rem; margin: .9rem 0 .5rem; }
  .markdown h3 { font-size: 1.1rem; margin: .8rem 0 .4rem; }
  .markdown p { margin: .5rem 0; }
  .markdown ul, .markdown ol { margin: .5rem 0 .5rem 1.25rem; }
  .markdown code { font-family: ui-monospace, SFMono-Regular, Menlo, Consolas, monospace;
                   background: rgba(148,163,184,.2); padding: 0 .25rem; border-radius: .25rem; }
  .markdown pre { padding: .75rem; border-radius: .5rem; overflow: auto; background: #0f172a; color: #e2e8f0; }
  .markdown table { border-collapse: collapse; }
  .markdown td, .markdown th { border: 1px solid #94a3b8; padding: 2px 6px; }
</style>
</head>
<body class="h-full bg-slate-50 dark:bg-slate-950 text-slate-900 dark:text-slate-100">
  <div id="toast" class="fixed top-4 right-4 space-y-2 z-50"></div>

  <header class="sticky top-0 z-40 border-b border-slate-200 dark:border-slate-800 bg-white/70 dark:bg-slate-950/70 backdrop-blur">
    <div class="max-w-7xl mx-auto px-4 py-3 flex items-center gap-3">
      <h1 class="text-xl font-semibold tracking-tight">Sticky Notes</h1>
      <span id="live" title="live updates"></span>
      <div class="flex-1"></div>
      <input id="q" class="w-64 md:w-80 rounded-lg border px-3 py-2 bg-white dark:bg-slate-900 border-slate-300 dark:border-slate-700"
             placeholder="Search (press /)" />
      <button id="newBtn" class="btn btn-primary" title="New (N)">New</button>
      <button id="themeBtn" class="btn" title="Toggle theme">Theme</button>
    </div>
  </header>

  <main class="max-w-7xl mx-auto px-4 py-4 grid grid-cols-1 md:grid-cols-[240px_1fr_1.1fr] gap-4">
    <aside class="space-y-4">
      <section class="rounded-xl border border-slate-200 dark:border-slate-800 p-3">
        <div class="flex items-center justify-between mb-2">
          <h3 class="text-sm font-semibold">Conversations</h3>
          <button id="clearConv" class="text-xs text-blue-600 hover:underline hidden">clear</button>
        </div>
        <div id="conversations" class="space-y-1 text-sm"></div>
      </section>
      <section class="rounded-xl border border-slate-200 dark:border-slate-800 p-3">
        <div class="flex items-center justify-between mb-2">
          <h3 class="text-sm font-semibold">Color</h3>
          <button id="clearColor" class="text-xs text-blue-600 hover:underline hidden">clear</button>
        </div>
        <div id="colorFilter" class="flex flex-wrap gap-2"></div>
      </section>
      <section class="rounded-xl border border-slate-200 dark:border-slate-800 p-3">
        <div class="flex items-center justify-between mb-2">
          <h3 class="text-sm font-semibold">Tags</h3>
          <button id="clearTags" class="text-xs text-blue-600 hover:underline hidden">clear</button>
        </div>
        <div id="tags" class="flex flex-wrap gap-2"></div>
      </section>
    </aside>

    <section class="space-y-2">
      <div class="flex items-center gap-2">
        <h2 class="font-semibold flex-1">Notes <span id="total" class="text-sm text-slate-500"></span></h2>
        <select id="sort" class="rounded-lg border px-2 py-1 bg-white dark:bg-slate-900 border-slate-300 dark:border-slate-700">
          <option value="updated_at">Updated</option>
          <option value="created_at">Created</option>
          <option value="title">Title</option>
          <option value="color_hex">Color</option>
          <option value="conversation_id">Conversation</option>
        </select>
        <select id="direction" class="rounded-lg border px-2 py-1 bg-white dark:bg-slate-900 border-slate-300 dark:border-slate-700">
          <option value="DESC">desc</option>
          <option value="ASC">asc</option>
        </select>
      </div>
      <div id="bulkBar" class="hidden flex items-center gap-2 text-sm">
        <span id="bulkCount"></span>
        <div id="bulkColors" class="flex gap-1"></div>
        <button id="exportBtn" class="btn">Export</button>
      </div>
      <div id="list" class="grid gap-2 max-h-[65vh] overflow-auto pr-1"></div>
      <div class="flex items-center justify-between text-sm">
        <button id="prevPage" class="btn">Prev</button>
        <span id="pageInfo" class="text-slate-500"></span>
        <button id="nextPage" class="btn">Next</button>
      </div>
    </section>

    <section id="detail" class="space-y-3"></section>
  </main>

  <dialog id="modal" class="rounded-xl border border-slate-200 dark:border-slate-800 p-0 w-[min(90vw,720px)]">
    <form method="dialog" class="bg-white dark:bg-slate-950 rounded-xl overflow-hidden">
      <div class="px-4 py-3 border-b border-slate-200 dark:border-slate-800 flex items-center justify-between">
        <h3 class="font-semibold">New note</h3>
        <button id="modalClose" class="btn" value="close">Close</button>
      </div>
      <div class="p-4 space-y-3">
        <input id="mtitle" maxlength="100" class="w-full rounded-lg border px-3 py-2 bg-white dark:bg-slate-900 border-slate-300 dark:border-slate-700" placeholder="Title" />
        <input id="mconv" class="w-full rounded-lg border px-3 py-2 bg-white dark:bg-slate-900 border-slate-300 dark:border-slate-700" placeholder="conversation (default)" />
        <input id="mtags" class="w-full rounded-lg border px-3 py-2 bg-white dark:bg-slate-900 border-slate-300 dark:border-slate-700" placeholder="tags (comma, separated)" />
        <div id="mcolors" class="flex gap-2"></div>
        <textarea id="mcontent" class="w-full h-52 rounded-lg border px-3 py-2 bg-white dark:bg-slate-900 border-slate-300 dark:border-slate-700" placeholder="Write markdown..."></textarea>
      </div>
      <div class="px-4 py-3 border-t border-slate-200 dark:border-slate-800 flex items-center justify-end gap-2">
        <button id="saveBtn" class="btn btn-primary">Save</button>
      </div>
    </form>
  </dialog>

  <script>
    const $ = (sel, root=document) => root.querySelector(sel);
    const $$ = (sel, root=document) => Array.from(root.querySelectorAll(sel));
    const store = {
      get k(){ return 'sticky-notes-ui'; },
      get(){ try{return JSON.parse(localStorage.getItem(this.k)||'{}')}catch{return{}} },
      set(v){ localStorage.setItem(this.k, JSON.stringify(v)) }
    };
    function toast(msg, kind='ok'){
      const el = document.createElement('div');
      el.className = 'px-3 py-2 rounded-lg shadow bg-white dark:bg-slate-900 border ' +
                     (kind==='err'?'border-rose-400 text-rose-700 dark:text-rose-300':'border-slate-200 dark:border-slate-700');
      el.textContent = msg;
      $('#toast').appendChild(el);
      setTimeout(()=> el.remove(), 3000);
    }
    async function j(url, opts={}){
      const res = await fetch(url, {headers:{'content-type':'application/json'}, ...opts});
      if(!res.ok){
        let text = await res.text().catch(()=>res.statusText);
        try{ const d=JSON.parse(text); text=d.error||text }catch{}
        throw new Error(text || res.statusText);
      }
      return res.json();
    }
    function debounce(fn, ms=250){
      let t; return (...args)=>{ clearTimeout(t); t = setTimeout(()=>fn(...args), ms); }
    }
    function escapeHtml(s){ return (s||'').replace(/[&<>"]/g, c=>({'&':'&amp;','<':'&lt;','>':'&gt;','"':'&quot;'}[c])); }
    function guard(fn){ return (...args)=> fn(...args).catch(e=> toast(e.message, 'err')); }

    function applyTheme(){
      const st = store.get();
      const dark = st.theme==='dark' || (!('theme' in st) && window.matchMedia('(prefers-color-scheme: dark)').matches);
      document.documentElement.classList.toggle('dark', dark);
    }
    applyTheme();
    $('#themeBtn').addEventListener('click', ()=>{
      const st = store.get(); st.theme = (document.documentElement.classList.contains('dark') ? 'light' : 'dark'); store.set(st); applyTheme();
    });

    // ---------- state ----------
    let config = {palette: [], defaultColor: '#FFE999', wsPath: '/ws', websocket: true};
    let notes = [];
    let current = null;
    let page = 1, totalPages = 0;
    const filter = {conversation: null, color: null, tags: new Set()};
    const selected = new Set();
    let newColor = null;

    function swatches(box, active, onPick){
      box.innerHTML = config.palette.map(p =>
        `<button type="button" title="${p.name}" data-hex="${p.hex}" class="swatch ${active===p.hex?'active':''}" style="background:${p.hex}"></button>`
      ).join('');
      $$('[data-hex]', box).forEach(b => b.onclick = ()=> onPick(b.dataset.hex));
    }

    // ---------- fetch & render ----------
    const load = guard(async function(){
      const params = new URLSearchParams({page, limit: 20, sort: $('#sort').value, direction: $('#direction').value});
      if($('#q').value.trim()) params.set('search', $('#q').value.trim());
      if(filter.conversation) params.set('conversation', filter.conversation);
      if(filter.color) params.set('color', filter.color);
      if(filter.tags.size) params.set('tags', Array.from(filter.tags).join(','));
      const data = await j('/api/notes?'+params.toString());
      notes = data.notes;
      totalPages = data.pagination.totalPages;
      $('#total').textContent = `(${data.pagination.total})`;
      $('#pageInfo').textContent = totalPages ? `page ${page} of ${totalPages}` : 'no results';
      $('#prevPage').disabled = page <= 1;
      $('#nextPage').disabled = page >= totalPages;
      renderList();
      if(current){
        const refreshed = notes.find(n => n.id===current.id);
        if(refreshed){ current = refreshed; renderDetail(); }
      }
    });

    const loadSidebar = guard(async function(){
      const [convs, tags] = await Promise.all([j('/api/conversations'), j('/api/tags')]);
      $('#conversations').innerHTML = convs.conversations.map(c => `
        <button data-conv="${escapeHtml(c.conversation_id)}" class="w-full text-left px-2 py-1 rounded ${filter.conversation===c.conversation_id?'bg-blue-600 text-white':''}">
          ${escapeHtml(c.conversation_id)} <span class="text-xs opacity-60">${c.note_count}</span>
        </button>`).join('') || '<div class="text-slate-500">none yet</div>';
      $$('#conversations [data-conv]').forEach(b => b.onclick = ()=>{
        filter.conversation = filter.conversation===b.dataset.conv ? null : b.dataset.conv;
        page = 1; loadSidebar(); load();
      });
      $('#clearConv').classList.toggle('hidden', !filter.conversation);

      $('#tags').innerHTML = tags.tags.map(t => `
        <button data-tag="${escapeHtml(t)}" class="pill ${filter.tags.has(t)?'bg-blue-600 text-white border-blue-600':''}">#${escapeHtml(t)}</button>`
      ).join('') || '<div class="text-sm text-slate-500">no tags</div>';
      $$('#tags [data-tag]').forEach(b => b.onclick = ()=>{
        const t = b.dataset.tag;
        filter.tags.has(t) ? filter.tags.delete(t) : filter.tags.add(t);
        page = 1; loadSidebar(); load();
      });
      $('#clearTags').classList.toggle('hidden', !filter.tags.size);

      swatches($('#colorFilter'), filter.color, hex => {
        filter.color = filter.color===hex ? null : hex; page = 1; loadSidebar(); load();
      });
      $('#clearColor').classList.toggle('hidden', !filter.color);
    });

    function renderList(){
      $('#list').innerHTML = notes.map(n => `
        <div class="sticky p-3 ${current && current.id===n.id ? 'ring-2 ring-blue-500' : ''}" style="background:${n.color_hex||config.defaultColor}">
          <div class="flex items-center gap-2">
            <input type="checkbox" data-pick="${n.id}" ${selected.has(n.id)?'checked':''}/>
            <button class="font-semibold truncate text-left flex-1" data-open="${n.id}">${escapeHtml(n.title)}</button>
            <span class="text-xs opacity-60">${escapeHtml(n.conversation_id)}</span>
          </div>
          <div class="mt-1 text-sm">${(n.tags||[]).map(t=>`<span class="pill">#${escapeHtml(t)}</span>`).join(' ')}</div>
          <div class="mt-1 text-xs opacity-60">updated ${new Date(n.updated_at*1000).toLocaleString()}</div>
        </div>`).join('') || '<div class="text-sm text-slate-500">no notes</div>';
      $$('#list [data-open]').forEach(b => b.onclick = ()=> select(Number(b.dataset.open)));
      $$('#list [data-pick]').forEach(c => c.onchange = ()=>{
        const id = Number(c.dataset.pick);
        c.checked ? selected.add(id) : selected.delete(id);
        renderBulkBar();
      });
      renderBulkBar();
    }

    function renderBulkBar(){
      $('#bulkBar').classList.toggle('hidden', !selected.size);
      $('#bulkCount').textContent = `${selected.size} selected`;
      swatches($('#bulkColors'), null, guard(async hex => {
        await j('/api/notes/bulk/color', {method:'PATCH', body: JSON.stringify({noteIds: Array.from(selected), color_hex: hex})});
        toast('Recolored'); load();
      }));
    }

    function renderDetail(){
      const d = $('#detail'); if(!current){ d.innerHTML=''; return; }
      d.innerHTML = `
        <div class="rounded-xl border border-slate-200 dark:border-slate-800">
          <div class="p-3 border-b border-slate-200 dark:border-slate-800 flex items-center gap-2">
            <input id="title" maxlength="100" class="flex-1 bg-transparent outline-none font-semibold" value="${escapeHtml(current.title)}" />
            <button class="btn btn-warn" id="delBtn">Delete</button>
          </div>
          <div class="p-3 space-y-2">
            <div id="detailColors" class="flex gap-2"></div>
            <input id="dtags" class="w-full rounded-lg border px-3 py-1 text-sm bg-white dark:bg-slate-900 border-slate-300 dark:border-slate-700"
                   value="${escapeHtml((current.tags||[]).join(', '))}" placeholder="tags" />
            <div class="flex items-center gap-3 text-sm">
              <button id="dTabEdit" class="btn">Edit</button>
              <button id="dTabPreview" class="btn">Preview</button>
            </div>
            <textarea id="content" class="w-full h-64 rounded-lg border px-3 py-2 bg-white dark:bg-slate-900 border-slate-300 dark:border-slate-700">${escapeHtml(current.content||"")}</textarea>
            <div id="preview" class="markdown hidden"></div>
          </div>
        </div>`;
      swatches($('#detailColors'), current.color_hex, guard(async hex => {
        current = await j(`/api/notes/${current.id}/color`, {method:'PATCH', body: JSON.stringify({color_hex: hex})});
        load();
      }));
      $('#dTabEdit').onclick = ()=>{ $('#content').classList.remove('hidden'); $('#preview').classList.add('hidden'); };
      $('#dTabPreview').onclick = guard(async ()=>{
        const content = $('#content').value;
        $('#preview').innerHTML = content ? (await j('/api/markdown/render', {method:'POST', body: JSON.stringify({content})})).html : '';
        $('#content').classList.add('hidden'); $('#preview').classList.remove('hidden');
      });
      $('#delBtn').onclick = guard(delNote);
      $('#title').addEventListener('change', guard(save));
      $('#dtags').addEventListener('change', guard(save));
      $('#content').addEventListener('change', guard(save));
    }

    // ---------- actions ----------
    const select = guard(async function(id){
      current = await j(`/api/notes/${id}`);
      renderList(); renderDetail();
    });
    async function save(){
      const title = $('#title').value.trim();
      if(!title){ toast('Title required','err'); return; }
      const tags = $('#dtags').value.split(',').map(s=>s.trim()).filter(Boolean);
      current = await j(`/api/notes/${current.id}`, {method:'PUT', body: JSON.stringify({title, content: $('#content').value, tags})});
      toast('Saved');
    }
    async function delNote(){
      if(!confirm('Delete this note?')) return;
      await j(`/api/notes/${current.id}`, {method:'DELETE'});
      selected.delete(current.id); current = null; renderDetail(); toast('Deleted');
    }

    $('#exportBtn').onclick = guard(async ()=>{
      const res = await fetch('/api/notes/export', {method:'POST', headers:{'content-type':'application/json'},
                                                    body: JSON.stringify({noteIds: Array.from(selected), format: 'md'})});
      if(!res.ok){ throw new Error((await res.json()).error); }
      const url = URL.createObjectURL(await res.blob());
      const a = document.createElement('a'); a.href = url; a.download = 'notes.md'; a.click(); URL.revokeObjectURL(url);
    });

    // ---------- new note ----------
    const modal = $('#modal');
    $('#newBtn').addEventListener('click', ()=>{
      $('#mtitle').value=''; $('#mcontent').value=''; $('#mtags').value=''; $('#mconv').value = filter.conversation || '';
      newColor = config.defaultColor;
      const pick = hex => { newColor = hex; swatches($('#mcolors'), newColor, pick); };
      pick(newColor);
      modal.showModal(); $('#mtitle').focus();
    });
    $('#modalClose').addEventListener('click', ()=> modal.close());
    $('#saveBtn').addEventListener('click', guard(async (e)=>{ e.preventDefault();
      const title = $('#mtitle').value.trim(); if(!title){ toast('Title required','err'); return; }
      const tags = $('#mtags').value.split(',').map(s=>s.trim()).filter(Boolean);
      await j('/api/notes', {method:'POST', body: JSON.stringify({
        title, content: $('#mcontent').value, tags, conversation_id: $('#mconv').value.trim() || null, color_hex: newColor})});
      toast('Created'); modal.close();
    }));

    // ---------- live updates ----------
    function connect(){
      if(!config.websocket) return;
      const ws = new WebSocket(`${location.protocol==='https:'?'wss':'ws'}://${location.host}${config.wsPath}`);
      ws.onopen = ()=> $('#live').classList.add('on');
      ws.onclose = ()=>{ $('#live').classList.remove('on'); setTimeout(connect, 2000); };
      ws.onmessage = debounce(()=>{ load(); loadSidebar(); }, 100);
    }

    $('#q').addEventListener('input', debounce(()=>{ page = 1; load(); }, 250));
    $('#sort').addEventListener('change', load);
    $('#direction').addEventListener('change', load);
    $('#prevPage').onclick = ()=>{ if(page>1){ page--; load(); } };
    $('#nextPage').onclick = ()=>{ if(page<totalPages){ page++; load(); } };
    $('#clearConv').onclick = ()=>{ filter.conversation = null; page = 1; loadSidebar(); load(); };
    $('#clearColor').onclick = ()=>{ filter.color = null; page = 1; loadSidebar(); load(); };
    $('#clearTags').onclick = ()=>{ filter.tags.clear(); page = 1; loadSidebar(); load(); };

    document.addEventListener('keydown', (e)=>{
      const tag = e.target.tagName;
      const isTyping = tag === 'INPUT' || tag === 'TEXTAREA' || e.target.isContentEditable;
      if (e.key === '/' && !isTyping) { e.preventDefault(); $('#q').focus(); return; }
      if ((e.key === 's' || e.key === 'S') && (e.ctrlKey || e.metaKey)) {
        e.preventDefault();
        if (current) guard(save)();
        return;
      }
      if (isTyping) return;
      if (e.key === 'n' || e.key === 'N') { e.preventDefault(); $('#newBtn').click(); }
    });

    guard(async ()=>{
      config = await j('/api/config');
      loadSidebar(); load(); connect();
    })();
  </script>
</body>
</html>
"""
