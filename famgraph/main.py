import logging

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from . import config
from .mutations import FamilyTreeSession, MutationResult, PersonNotFound
from .persistence import UNREADABLE_MESSAGE, ImportFormatError, parse_family_graph, portable_filename
from .photos import try_embed_photo
from .plotly_graph.plotly_render import build_plotly_figure_json
from .schemas import FamilyGraph, LayoutOut, LinkContext, PersonDraft, PersonOptionsOut, StatusOut
from .tasks import BackgroundDispatcher

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

_session: FamilyTreeSession | None = None


def get_session() -> FamilyTreeSession:
    global _session
    if _session is None:
        _session = FamilyTreeSession(config.make_store(), BackgroundDispatcher())
        _session.load()
    return _session


app = FastAPI(title="famgraph")


def _result(res: MutationResult) -> JSONResponse:
    if not res.ok:
        return JSONResponse(status_code=422, content={"errors": res.errors})
    return JSONResponse(content=res.person.model_dump(by_alias=True, exclude_none=True))


def _not_found(person_id: str) -> HTTPException:
    return HTTPException(404, f"Person not found: {person_id}")


class SaveBody(PersonDraft):
    context: LinkContext | None = None


@app.get("/health")
def health():
    return {"ok": True}


# ── Persistence collaborator ──

@app.get("/api/data")
def get_data(session: FamilyTreeSession = Depends(get_session)):
    graph = session.store.load() if session.store is not None else None
    if graph is None:
        raise HTTPException(404, "no data file")
    return graph.to_dict()


@app.post("/api/data")
async def post_data(request: Request, session: FamilyTreeSession = Depends(get_session)):
    try:
        graph = parse_family_graph(await request.json())
    except ImportFormatError as e:
        raise HTTPException(400, str(e))
    except ValueError:
        raise HTTPException(400, UNREADABLE_MESSAGE)
    session.replace_graph(graph)
    return {"ok": True}


@app.post("/api/snapshot")
def post_snapshot(session: FamilyTreeSession = Depends(get_session)):
    if session.store is None:
        raise HTTPException(503, "No store configured")
    filename = session.store.snapshot(session.graph)
    return {"ok": True, "filename": filename}


# ── People ──

@app.get("/api/people")
def list_people(session: FamilyTreeSession = Depends(get_session)):
    people = sorted(session.graph.people, key=lambda p: p.display_name.lower())
    return [p.model_dump(by_alias=True, exclude_none=True) for p in people]


@app.post("/api/people")
def add_person(body: SaveBody, session: FamilyTreeSession = Depends(get_session)):
    draft = PersonDraft.model_validate(body.model_dump(exclude={"context"}))
    return _result(session.save_person(draft, body.context))


@app.put("/api/people/{person_id}")
def update_person(person_id: str, body: PersonDraft, session: FamilyTreeSession = Depends(get_session)):
    if session.graph.get(person_id) is None:
        raise _not_found(person_id)
    return _result(session.save_person(body.model_copy(update={"id": person_id})))


@app.delete("/api/people/{person_id}")
def delete_person(person_id: str, session: FamilyTreeSession = Depends(get_session)):
    try:
        session.delete_person(person_id)
    except PersonNotFound:
        raise _not_found(person_id)
    return {"ok": True}


@app.post("/api/people/{person_id}/parents")
def add_parent(person_id: str, body: PersonDraft, session: FamilyTreeSession = Depends(get_session)):
    try:
        return _result(session.add_parent(person_id, body))
    except PersonNotFound:
        raise _not_found(person_id)


@app.post("/api/people/{person_id}/children")
def add_child(person_id: str, body: PersonDraft, session: FamilyTreeSession = Depends(get_session)):
    try:
        return _result(session.add_child(person_id, body))
    except PersonNotFound:
        raise _not_found(person_id)


@app.post("/api/people/{person_id}/siblings")
def add_sibling(person_id: str, body: PersonDraft, session: FamilyTreeSession = Depends(get_session)):
    try:
        return _result(session.add_sibling(person_id, body))
    except PersonNotFound:
        raise _not_found(person_id)


@app.get("/api/people/{person_id}/options", response_model=PersonOptionsOut)
def person_options(person_id: str, session: FamilyTreeSession = Depends(get_session)):
    try:
        return session.options(person_id)
    except PersonNotFound:
        raise _not_found(person_id)


# ── Layout / rendering ──

@app.get("/api/layout", response_model=LayoutOut)
def get_layout(session: FamilyTreeSession = Depends(get_session)):
    layout = session.layout()
    by_id = {p.id: p for p in session.graph.people}
    nodes = [
        {"id": pid, "label": by_id[pid].display_name, "x": x, "y": y,
         "generation": layout.generations[pid]}
        for pid, (x, y) in layout.positions.items()
    ]
    edges = [{"id": e.id, "source": e.source, "target": e.target} for e in layout.edges]
    return {"nodes": nodes, "edges": edges}


@app.get("/api/graph")
def get_graph(session: FamilyTreeSession = Depends(get_session)):
    return build_plotly_figure_json(session.graph)


@app.get("/api/status", response_model=StatusOut)
def status(session: FamilyTreeSession = Depends(get_session)):
    return {"dirty": session.dirty, "people": len(session.graph.people)}


# ── Manual backup / restore ──

@app.get("/api/export")
def export(session: FamilyTreeSession = Depends(get_session)):
    data = session.export_portable()
    return Response(
        content=data,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{portable_filename()}"'},
    )


@app.post("/api/import")
async def import_file(request: Request, session: FamilyTreeSession = Depends(get_session)):
    try:
        graph: FamilyGraph = session.import_portable(await request.body())
    except ImportFormatError as e:
        raise HTTPException(400, str(e))
    return {"ok": True, "people": len(graph.people)}


@app.post("/api/photo")
async def upload_photo(request: Request):
    data_url, warning = try_embed_photo(await request.body())
    return {"photoDataUrl": data_url, "warning": warning}
