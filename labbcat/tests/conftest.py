from __future__ import annotations

import base64
import json
import socket
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pytest
import uvicorn
from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from labbcat.admin import LabbcatAdmin
from labbcat.edit import LabbcatEdit
from labbcat.view import LabbcatView

USERNAME = "labbcat"
PASSWORD = "secret"
SESSION_COOKIE = "stub-session"
SERVER_VERSION = "20230224.1731"


@dataclass
class Reply:
    """Canned reply; `body` replaces the JSON envelope when set."""

    model: Any = None
    status: int = 200
    errors: List[str] = field(default_factory=list)
    code: int = 0
    body: Optional[bytes] = None
    content_type: str = "application/json"
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class Recorded:
    method: str
    path: str
    query: Dict[str, List[str]]
    form: Dict[str, List[str]]
    files: Dict[str, List[Tuple[str, bytes]]]
    json: Any
    text: Optional[str]
    headers: Dict[str, str]


@dataclass
class StubState:
    """What the stub server knows and what it has been asked."""

    version: str = SERVER_VERSION
    require_auth: bool = True
    requests: List[Recorded] = field(default_factory=list)
    canned: Dict[str, Union[Reply, Callable[[Recorded], Reply], Any]] = field(default_factory=dict)
    tasks: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    search_polls: int = 1
    matches: List[Dict[str, Any]] = field(default_factory=list)
    next_thread_id: int = 100

    def reset(self) -> None:
        self.version = SERVER_VERSION
        self.require_auth = True
        self.requests.clear()
        self.canned.clear()
        self.tasks.clear()
        self.search_polls = 1
        self.matches = []
        self.next_thread_id = 100

    def add_task(self, thread_id: str, polls: int = 0, **status: Any) -> None:
        """Register a task that reports running for `polls` status requests."""
        self.tasks[str(thread_id)] = {"polls": polls, "status": dict(status)}

    def calls(self, path: str) -> List[Recorded]:
        return [r for r in self.requests if r.path == path]


def envelope(state: StubState, reply: Reply) -> Response:
    if reply.body is not None:
        return Response(
            content=reply.body,
            status_code=reply.status,
            media_type=reply.content_type,
            headers=reply.headers,
        )
    return JSONResponse(
        {
            "title": "LaBB-CAT",
            "version": state.version,
            "code": reply.code,
            "errors": reply.errors,
            "messages": [],
            "model": reply.model,
        },
        status_code=reply.status,
        headers=reply.headers,
    )


class StubAuthMiddleware(BaseHTTPMiddleware):
    """HTTP Basic auth that hands out a session cookie, like the servlet container."""

    def __init__(self, app, *, state: StubState):
        super().__init__(app)
        self._state = state
        self._expected = "Basic " + base64.b64encode(f"{USERNAME}:{PASSWORD}".encode()).decode()

    async def dispatch(self, request: Request, call_next: Callable):
        if not self._state.require_auth:
            return await call_next(request)
        if request.cookies.get("JSESSIONID") == SESSION_COOKIE:
            return await call_next(request)
        if request.headers.get("authorization") == self._expected:
            response = await call_next(request)
            response.set_cookie("JSESSIONID", SESSION_COOKIE, path="/")
            return response
        self._state.requests.append(
            Recorded(request.method, request.url.path.lstrip("/"), {}, {}, {}, None, None,
                     {k.lower(): v for k, v in request.headers.items()})
        )
        return envelope(self._state, Reply(status=401, errors=["Unauthorized"]))


def _task_status(thread_id: str, task: Dict[str, Any]) -> Dict[str, Any]:
    out = {
        "threadId": thread_id,
        "threadName": "stub task",
        "running": task["polls"] > 0,
        "duration": 1,
        "percentComplete": 50 if task["polls"] > 0 else 100,
        "status": "working" if task["polls"] > 0 else "complete",
        "refreshSeconds": 2,
    }
    out.update(task["status"])
    return out


def _builtin(state: StubState, rec: Recorded) -> Optional[Reply]:
    """Task lifecycle endpoints, which need state across calls."""

    q = {k: v[0] for k, v in rec.query.items()}
    if rec.path == "api/store/":
        return Reply(model=None)
    if rec.path == "thread":
        task = state.tasks.get(q.get("threadId", ""))
        if task is None:
            return Reply(status=404, errors=["Invalid task ID: " + q.get("threadId", "")])
        status = _task_status(q["threadId"], task)
        if task["polls"] > 0:
            task["polls"] -= 1
        return Reply(model=status)
    if rec.path == "threads":
        thread_id = q.get("threadId")
        command = q.get("command")
        if command == "cancel" and thread_id in state.tasks:
            state.tasks[thread_id]["polls"] = 0
            state.tasks[thread_id]["status"]["status"] = "cancelled"
            return Reply(model=None)
        if command == "release":
            if state.tasks.pop(thread_id, None) is None:
                return Reply(status=404, errors=["Invalid task ID: " + str(thread_id)])
            return Reply(model=None)
        return Reply(model={tid: _task_status(tid, t) for tid, t in state.tasks.items()})
    if rec.path == "search":
        state.next_thread_id += 1
        thread_id = str(state.next_thread_id)
        state.add_task(thread_id, polls=state.search_polls)
        return Reply(model={"threadId": thread_id})
    if rec.path == "resultsStream":
        matches = list(state.matches)
        if "pageLength" in q:
            start = int(q.get("pageNumber", "0")) * int(q["pageLength"])
            matches = matches[start : start + int(q["pageLength"])]
        return Reply(model={"matches": matches})
    return None


def create_stub_app(state: StubState) -> FastAPI:
    """Create a FastAPI app that answers like a LaBB-CAT server."""

    app = FastAPI(title="LaBB-CAT stub", version="0.1")
    app.add_middleware(StubAuthMiddleware, state=state)

    @app.api_route("/{path:path}", methods=["GET", "POST", "PUT", "DELETE"])
    async def everything(path: str, request: Request):
        form: Dict[str, List[str]] = {}
        files: Dict[str, List[Tuple[str, bytes]]] = {}
        body_json = None
        text = None
        ctype = request.headers.get("content-type", "")
        if ctype.startswith("multipart/form-data") or ctype.startswith(
            "application/x-www-form-urlencoded"
        ):
            data = await request.form()
            for name, value in data.multi_items():
                if hasattr(value, "read"):
                    files.setdefault(name, []).append((value.filename, await value.read()))
                else:
                    form.setdefault(name, []).append(value)
        elif ctype.startswith("application/json"):
            body_json = json.loads(await request.body())
        else:
            raw = await request.body()
            text = raw.decode("utf-8") if raw else None

        query: Dict[str, List[str]] = {}
        for name, value in request.query_params.multi_items():
            query.setdefault(name, []).append(value)
        rec = Recorded(
            method=request.method,
            path=path,
            query=query,
            form=form,
            files=files,
            json=body_json,
            text=text,
            headers={k.lower(): v for k, v in request.headers.items()},
        )
        state.requests.append(rec)

        canned = state.canned.get(path)
        if canned is None:
            reply = _builtin(state, rec) or Reply(status=404, errors=[f"Not found: {path}"])
        elif callable(canned):
            reply = canned(rec)
        elif isinstance(canned, Reply):
            reply = canned
        else:
            reply = Reply(model=canned)
        return envelope(state, reply)

    return app


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture(scope="session")
def stub_server():
    state = StubState()
    port = _free_port()
    config = uvicorn.Config(
        create_stub_app(state), host="127.0.0.1", port=port, log_level="warning", lifespan="off"
    )
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()
    deadline = time.monotonic() + 10
    while not server.started:
        if time.monotonic() > deadline:
            raise RuntimeError("stub server did not start")
        time.sleep(0.01)
    yield state, f"http://127.0.0.1:{port}/"
    server.should_exit = True
    thread.join(timeout=5)


@pytest.fixture()
def stub(stub_server) -> StubState:
    state, _ = stub_server
    state.reset()
    return state


@pytest.fixture()
def base_url(stub_server) -> str:
    return stub_server[1]


def _no_sleep(client, sleeps: List[float]):
    client._sleep = sleeps.append
    return client


@pytest.fixture()
def sleeps() -> List[float]:
    return []


@pytest.fixture()
def view(stub, base_url, sleeps) -> LabbcatView:
    return _no_sleep(LabbcatView(base_url, USERNAME, PASSWORD), sleeps)


@pytest.fixture()
def edit(stub, base_url, sleeps) -> LabbcatEdit:
    return _no_sleep(LabbcatEdit(base_url, USERNAME, PASSWORD), sleeps)


@pytest.fixture()
def admin(stub, base_url, sleeps) -> LabbcatAdmin:
    return _no_sleep(LabbcatAdmin(base_url, USERNAME, PASSWORD), sleeps)
