from __future__ import annotations

from fastapi import FastAPI, HTTPException

from rsr import db
from rsr.address import parse_address
from rsr.api_models import AddServerRequest, IngestionRequest, ServerOut, StateOut
from rsr.reconciler import Reconciler
from rsr.resolv_conf import ResolvConfError, ResolvConfWriteError
from rsr.settings import settings
from rsr.state import ResolverState, ServerEntry, ServerOrigin


def _on_cache_flush() -> None:
    db.log_event("INFO", "DNS cache flushed")


def _on_active_server_change(entry: ServerEntry | None) -> None:
    if entry is None:
        db.log_event("INFO", "No active DNS server")
    else:
        db.log_event("INFO", f"Switching to DNS server {entry.server_string} ({entry.origin.value})")


state = ResolverState(
    read_resolv_conf=settings.read_resolv_conf,
    on_cache_flush=_on_cache_flush,
    on_active_server_change=_on_active_server_change,
)
reconciler = Reconciler(state)

app = FastAPI(title="Resolver State Reconciler")


@app.on_event("startup")
def startup():
    db.init_db()
    reconciler.load_fallback()
    reconciler.start()


@app.on_event("shutdown")
def shutdown():
    reconciler.stop()


def _server_out(s: ServerEntry) -> ServerOut:
    return ServerOut(address=s.server_string, origin=s.origin.value, active=s is state.active_server)


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/state", response_model=StateOut)
def get_state():
    with state.lock:
        return StateOut(
            servers=[_server_out(s) for s in state.servers],
            search_domains=[d.name for d in state.search_domains],
            resolv_conf_mtime=state.resolv_conf_mtime,
            read_resolv_conf=state.read_resolv_conf,
            generation=state.generation,
            cache_flushes=state.cache_flushes,
        )


@app.post("/servers", response_model=ServerOut)
def add_server(req: AddServerRequest):
    try:
        address = parse_address(req.address)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    with state.lock:
        entry = state.add_server(ServerOrigin(req.origin), address)
        out = _server_out(entry)
    db.log_event("INFO", f"Added {req.origin} DNS server {entry.server_string}")
    return out


@app.delete("/servers")
def remove_server(address: str, origin: str = "link"):
    try:
        addr = parse_address(address)
        server_origin = ServerOrigin(origin)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    with state.lock:
        entry = state.find_server(server_origin, addr)
        if entry is None:
            raise HTTPException(status_code=404, detail=f"Unknown {origin} server '{address}'.")
        state.remove_server(entry)
    db.log_event("INFO", f"Removed {origin} DNS server {entry.server_string}")
    return {"removed": entry.server_string}


@app.post("/resolv-conf/reload")
def reload_resolv_conf():
    try:
        changed = reconciler.reload()
    except ResolvConfError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"changed": changed}


@app.post("/resolv-conf/write")
def write_resolv_conf():
    try:
        reconciler.write()
    except ResolvConfWriteError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"written": reconciler.managed_path}


@app.put("/resolv-conf/ingestion")
def set_ingestion(req: IngestionRequest):
    with state.lock:
        if req.enabled and not state.read_resolv_conf:
            # Forget what we saw so the next pass reads the file again.
            state.resolv_conf_mtime = None
        state.read_resolv_conf = req.enabled
    db.log_event("INFO", f"resolv.conf ingestion {'enabled' if req.enabled else 'disabled'}")
    return {"read_resolv_conf": req.enabled}


@app.get("/events")
def events(limit: int = 100):
    return db.latest_events(limit=max(1, min(1000, limit)))
