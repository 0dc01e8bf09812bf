import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import httpx
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field
from pymongo.database import Database

from config import Settings, load_settings
from counters import CounterSync
from database import bounded, connect, ensure_indexes
from directory import UserDirectory
from errors import IdeaNotFoundError, InvalidIdError, MalformedBodyError, ServiceError
from gateway import AuthGateway
from identity import IdentityResolver
from ideas import IdeaRepository
from ledger import EngagementLedger
from schemas import EngagementKind

logger = logging.getLogger(__name__)


# ---------- Utilities ----------

def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise InvalidIdError()


def serialize(doc: dict) -> dict:
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, datetime):
            d[k] = v.isoformat()
        elif isinstance(v, ObjectId):
            d[k] = str(v)
    return d


def get_gateway(request: Request) -> AuthGateway:
    return request.app.state.gateway


def get_ideas(request: Request) -> IdeaRepository:
    return request.app.state.ideas


# ---------- Schemas (API layer) ----------

class AuthCode(BaseModel):
    code: str = Field(..., min_length=1, description="OAuth code from the GitHub redirect")


class IdeaCreate(BaseModel):
    name: str
    description: str


class IdeaUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


# ---------- App ----------

def create_app(
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    http_client: Optional[httpx.Client] = None,
) -> FastAPI:
    """Build the API. db and http_client are injected by tests; otherwise the
    lifespan connects to MongoDB and opens its own provider client."""
    settings = settings or load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings.check()
        owned = []

        database = db
        if database is None:
            database = connect(settings.database_url, settings.database_name, settings.directory_timeout_s)
            owned.append(database.client)
        ensure_indexes(database)

        client = http_client
        if client is None:
            client = httpx.Client(timeout=settings.provider_timeout_s)
            owned.append(client)

        ideas = IdeaRepository(database, settings.write_timeout_s)
        app.state.db = database
        app.state.ideas = ideas
        app.state.gateway = AuthGateway(
            resolver=IdentityResolver(client, settings.github_client, settings.github_secret),
            directory=UserDirectory(database, settings.directory_timeout_s),
            ledger=EngagementLedger(database, ideas, settings.write_timeout_s),
            counters=CounterSync(database, settings.write_timeout_s),
        )
        logger.info("connected to %s, serving %s", settings.database_name, settings.environment)
        try:
            yield
        finally:
            for resource in owned:
                resource.close()

    app = FastAPI(title="Sardene API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Errors ----------

    @app.exception_handler(ServiceError)
    async def service_error(request: Request, exc: ServiceError):
        content = {"status": exc.status_code, "error": exc.message}
        if settings.error_detail == "verbose":
            content["detail"] = type(exc).__name__
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def malformed_body(request: Request, exc: RequestValidationError):
        err = MalformedBodyError()
        return JSONResponse(status_code=err.status_code, content={"status": err.status_code, "error": err.message})

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"status": 500, "error": "Server error"})

    # ---------- Basic ----------

    @app.get("/", response_class=PlainTextResponse)
    def welcome():
        return (
            "Welcome to Sardene API, \nServer running successfully"
            "\nVisit https://github.com/M-ZubairAhmed/Sardene-API for documentation."
        )

    @app.get("/ping")
    def ping(request: Request):
        with bounded(settings.directory_timeout_s):
            request.app.state.db.command("ping")
        return {"status": 200, "message": "pinged success", "database": "connected"}

    # ---------- Auth ----------

    @app.post("/auth")
    def auth_user(payload: AuthCode, gateway: AuthGateway = Depends(get_gateway)):
        code = payload.code.strip()
        if not code:
            raise MalformedBodyError()
        identity, credential = gateway.login(code)
        return {
            "identity": identity.model_dump(),
            "access_token": credential.access_token,
            "token_type": credential.token_type,
            "scope": credential.scope,
        }

    # ---------- Ideas ----------

    @app.get("/ideas")
    def list_ideas(ideas: IdeaRepository = Depends(get_ideas)):
        items = [serialize(i) for i in ideas.list_all()]
        return {"status": 200, "data": items, "count": len(items)}

    @app.get("/idea/{idea_id}")
    def get_idea(idea_id: str, ideas: IdeaRepository = Depends(get_ideas)):
        idea = ideas.find_by_id(oid(idea_id))
        if not idea:
            raise IdeaNotFoundError()
        return {"status": 200, "data": serialize(idea)}

    @app.post("/idea/add", status_code=201)
    def add_idea(
        payload: IdeaCreate,
        authorization: Optional[str] = Header(None),
        gateway: AuthGateway = Depends(get_gateway),
        ideas: IdeaRepository = Depends(get_ideas),
    ):
        name = payload.name.strip()
        description = payload.description.strip()
        if not name or not description:
            raise MalformedBodyError("Name or description is not provided in the post")
        identity = gateway.authenticate(authorization)
        doc = ideas.insert(name, description, publisher=identity.login)
        return {"status": 201, "data": serialize(doc)}

    @app.put("/idea/update/{idea_id}")
    def update_idea(
        idea_id: str,
        payload: IdeaUpdate,
        authorization: Optional[str] = Header(None),
        gateway: AuthGateway = Depends(get_gateway),
        ideas: IdeaRepository = Depends(get_ideas),
    ):
        pid = oid(idea_id)
        fields = {}
        if payload.name and payload.name.strip():
            fields["name"] = payload.name.strip()
        if payload.description and payload.description.strip():
            fields["description"] = payload.description.strip()
        if not fields:
            raise MalformedBodyError("Both name and description are empty")
        gateway.authenticate(authorization)
        if not ideas.update_fields(pid, fields):
            raise IdeaNotFoundError()
        return {"status": 200, "message": "Updated idea successfully"}

    @app.delete("/idea/delete/{idea_id}")
    def delete_idea(
        idea_id: str,
        authorization: Optional[str] = Header(None),
        gateway: AuthGateway = Depends(get_gateway),
        ideas: IdeaRepository = Depends(get_ideas),
    ):
        pid = oid(idea_id)
        gateway.authenticate(authorization)
        if not ideas.delete(pid):
            raise IdeaNotFoundError()
        return {"status": 200, "message": "Idea deleted successfully"}

    # ---------- Engagement ----------

    def engage(idea_id: str, kind: EngagementKind, authorization: Optional[str], gateway: AuthGateway) -> dict:
        pid = oid(idea_id)
        identity = gateway.authenticate(authorization)
        idea = gateway.engage(identity, pid, kind)
        return {"status": 200, "data": serialize(idea), "message": f"Increased {kind.counter} of idea"}

    @app.patch("/idea/gaze/{idea_id}")
    def gaze_idea(idea_id: str, authorization: Optional[str] = Header(None), gateway: AuthGateway = Depends(get_gateway)):
        return engage(idea_id, EngagementKind.LIKE, authorization, gateway)

    @app.patch("/idea/make/{idea_id}")
    def make_idea(idea_id: str, authorization: Optional[str] = Header(None), gateway: AuthGateway = Depends(get_gateway)):
        return engage(idea_id, EngagementKind.MAKE, authorization, gateway)

    def engaged(kind: EngagementKind, authorization: Optional[str], gateway: AuthGateway) -> dict:
        identity = gateway.authenticate(authorization)
        records = [r.model_dump(mode="json") for r in gateway.engagements(identity, kind)]
        return {"status": 200, "data": records, "count": len(records)}

    @app.get("/ideas/gazed")
    def gazed_ideas(authorization: Optional[str] = Header(None), gateway: AuthGateway = Depends(get_gateway)):
        return engaged(EngagementKind.LIKE, authorization, gateway)

    @app.get("/ideas/made")
    def made_ideas(authorization: Optional[str] = Header(None), gateway: AuthGateway = Depends(get_gateway)):
        return engaged(EngagementKind.MAKE, authorization, gateway)

    return app


app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
