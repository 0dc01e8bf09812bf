"""Shared fixtures: in-memory MongoDB, a fake GitHub, and the wired gateway."""

import json
import threading
from typing import Dict, List
from urllib.parse import parse_qs

import httpx
import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from config import Settings
from counters import CounterSync
from database import IDEAS, ensure_indexes
from directory import UserDirectory
from gateway import AuthGateway
from identity import GITHUB_TOKEN_URL, GITHUB_USER_URL, IdentityResolver
from ideas import IdeaRepository
from ledger import EngagementLedger
from main import create_app
from schemas import Identity

IDEA_ID = "507f1f77bcf86cd799439011"

ALICE = Identity(id=1001, login="alice", name="Alice")
BOB = Identity(id=1002, login="bob", name="Bob")


class LockedCollection:
    """mongomock collection whose operations run one at a time.

    mongomock checks unique indexes and inserts in separate steps; a real
    server does both atomically per document. Serializing calls restores
    that guarantee for the threaded tests.
    """

    def __init__(self, collection, lock):
        self._collection = collection
        self._lock = lock

    def __getattr__(self, name):
        attr = getattr(self._collection, name)
        if not callable(attr):
            return attr

        def locked(*args, **kwargs):
            with self._lock:
                return attr(*args, **kwargs)

        return locked


class LockedDatabase:
    def __init__(self, db):
        self._db = db
        self._lock = threading.RLock()

    def __getitem__(self, name):
        return LockedCollection(self._db[name], self._lock)

    def __getattr__(self, name):
        return getattr(self._db, name)


class FakeGitHub:
    """Stands in for the token and profile endpoints."""

    def __init__(self):
        self.codes: Dict[str, str] = {}
        self.profiles: Dict[str, dict] = {}
        self.calls: List[httpx.Request] = []
        self.down = False
        self.token_body = None

    def add_user(self, code: str, token: str, profile: dict) -> None:
        self.codes[code] = token
        self.profiles[token] = profile

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.down:
            raise httpx.ConnectError("provider unreachable", request=request)

        url = str(request.url)
        if request.method == "POST" and url.startswith(GITHUB_TOKEN_URL):
            if self.token_body is not None:
                return httpx.Response(200, content=self.token_body)
            form = parse_qs(request.content.decode())
            code = form.get("code", [""])[0]
            token = self.codes.get(code)
            if token is None:
                return httpx.Response(200, json={"error": "bad_verification_code"})
            return httpx.Response(200, json={"access_token": token, "token_type": "bearer", "scope": "read:user"})

        if request.method == "GET" and url.startswith(GITHUB_USER_URL):
            auth = request.headers.get("Authorization", "")
            profile = self.profiles.get(auth.replace("Bearer ", "", 1))
            if profile is None:
                return httpx.Response(401, content=json.dumps({"message": "Bad credentials"}))
            return httpx.Response(200, json=profile)

        return httpx.Response(404)


@pytest.fixture
def db():
    database = LockedDatabase(mongomock.MongoClient()["sardene-test"])
    ensure_indexes(database)
    return database


@pytest.fixture
def github() -> FakeGitHub:
    fake = FakeGitHub()
    fake.add_user("abc123", "tok-alice", {"id": ALICE.id, "login": ALICE.login, "name": ALICE.name})
    fake.add_user("bob-code", "tok-bob", {"id": BOB.id, "login": BOB.login, "name": BOB.name})
    return fake


@pytest.fixture
def http_client(github: FakeGitHub):
    with httpx.Client(transport=httpx.MockTransport(github.handler)) as client:
        yield client


@pytest.fixture
def resolver(http_client) -> IdentityResolver:
    return IdentityResolver(http_client, "client-id", "client-secret")


@pytest.fixture
def ideas(db) -> IdeaRepository:
    return IdeaRepository(db)


@pytest.fixture
def ledger(db, ideas) -> EngagementLedger:
    return EngagementLedger(db, ideas)


@pytest.fixture
def counters(db) -> CounterSync:
    return CounterSync(db)


@pytest.fixture
def gateway(db, resolver, ledger, counters) -> AuthGateway:
    return AuthGateway(resolver=resolver, directory=UserDirectory(db), ledger=ledger, counters=counters)


@pytest.fixture
def idea_id(db) -> ObjectId:
    oid = ObjectId(IDEA_ID)
    db[IDEAS].insert_one(
        {
            "_id": oid,
            "name": "Sardene",
            "description": "A place for ideas",
            "publisher": "alice",
            "makers": 0,
            "gazers": 0,
            "created_at": 1577836800,
        }
    )
    return oid


@pytest.fixture
def settings() -> Settings:
    return Settings(github_client="client-id", github_secret="client-secret")


@pytest.fixture
def client(settings, db, http_client):
    app = create_app(settings=settings, db=db, http_client=http_client)
    with TestClient(app) as c:
        yield c
