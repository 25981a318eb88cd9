"""Dashboard frontend for the services behind the gateway.

Serves the UI pages under ``settings.ui_prefix`` and a small JSON API backed
by the probe package: health snapshot and refresh, per-service endpoint
testing and cross-service tests. When ``dev_proxy`` is enabled the
``/service-a`` and ``/service-b`` prefixes are forwarded to the gateway.

The app is built by ``create_app``; run it with ``probe serve`` or
``uvicorn --factory frontend:create_app``.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from pydantic import BaseModel

from probe.client import HttpClientAdapter
from probe.config import ServiceName, Settings, load_settings
from probe.cross_service import CrossServiceRunner
from probe.endpoints import EndpointTester
from probe.health import HealthAggregator, HealthPoller

logger = logging.getLogger(__name__)

# not forwarded by the dev proxy
HOP_HEADERS = {"connection", "content-length", "content-encoding", "transfer-encoding", "host"}


class EndpointTestRequest(BaseModel):
    name: str


# ---------------------------------------------------------------------------
# HTML pages


_NAV = [("Dashboard", ""), ("Service A", "/service-a"), ("Service B", "/service-b"), ("Cross-Service", "/cross-service")]


def _page(prefix: str, title: str, body: str, script: str) -> str:
    nav = "".join(
        f"<button class='nav-btn' onclick=\"location.href='{prefix}{path or '/'}'\">{label}</button>"
        for label, path in _NAV
    )
    return (
        "<html><head><title>Multi-Service Application</title></head><body>"
        f"<header><h1>Multi-Service Application</h1><nav>{nav}</nav></header>"
        f"<main><h2>{title}</h2>{body}</main>"
        f"<script>{script}</script></body></html>"
    )


def dashboard_page(prefix: str, interval: float) -> str:
    cards = "".join(
        f"<div class='service-card' id='{name.value}'><h3>{name.value}</h3>"
        f"<p>Status: <span class='status'>unknown</span></p><pre class='data'></pre></div>"
        for name in ServiceName
    )
    script = (
        "function render(data){"
        "for(const [name,res] of Object.entries(data)){"
        "const card=document.getElementById(name);if(!card)continue;"
        "card.className='service-card '+res.status;"
        "card.querySelector('.status').textContent=res.status;"
        "card.querySelector('.data').textContent=res.data==null?'':JSON.stringify(res.data,null,2);"
        "}}"
        "async function load(){const res=await fetch('/api/health');render(await res.json());}"
        "async function refresh(){const btn=document.getElementById('refresh');btn.disabled=true;"
        "try{const res=await fetch('/api/health/refresh',{method:'POST'});"
        "if(res.ok){render(await res.json());}}finally{btn.disabled=false;}}"
        f"load();setInterval(load,{int(interval * 1000)});"
    )
    body = (
        f"<div class='service-grid'>{cards}</div>"
        "<button id='refresh' class='refresh-btn' onclick='refresh()'>Refresh Services</button>"
    )
    return _page(prefix, "Service Dashboard", body, script)


_RENDER_RESULT = (
    "function show(r){const out=document.getElementById('result');"
    "let head='';"
    "if(r.endpoint){head+='<p><strong>Endpoint:</strong> <code>'+(r.method||'GET')+' '+r.endpoint+'</code></p>';}"
    "if(r.endpoints){head+='<p><strong>Endpoints:</strong></p><ul>'+"
    "Object.values(r.endpoints).map(e=>'<li><code>GET '+e+'</code></li>').join('')+'</ul>';}"
    "out.innerHTML='<h3>Result:</h3>'+head+'<p><strong>Status:</strong> '+r.status+'</p>';"
    "const pre=document.createElement('pre');pre.textContent=JSON.stringify(r.data,null,2);out.appendChild(pre);}"
    "function setBusy(b){document.querySelectorAll('.endpoint-btn,.test-btn').forEach(x=>x.disabled=b);"
    "document.getElementById('loading').style.display=b?'block':'none';}"
)


def service_page(prefix: str, service: ServiceName) -> str:
    script = _RENDER_RESULT + (
        f"const svc={json.dumps(service.value)};"
        "async function run(name){setBusy(true);document.getElementById('result').innerHTML='';"
        "try{const res=await fetch('/api/services/'+svc+'/test',{method:'POST',"
        "headers:{'Content-Type':'application/json'},body:JSON.stringify({name:name})});"
        "if(res.ok){show(await res.json());}}finally{setBusy(false);}}"
        "async function init(){const res=await fetch('/api/services/'+svc+'/endpoints');"
        "const eps=await res.json();const box=document.getElementById('endpoints');"
        "for(const ep of eps){const b=document.createElement('button');b.className='endpoint-btn';"
        "b.textContent=ep.method+' '+ep.name;b.onclick=()=>run(ep.name);box.appendChild(b);}}"
        "init();"
    )
    body = (
        "<div id='endpoints' class='endpoints'></div>"
        "<div id='loading' class='loading' style='display:none'>Testing endpoint...</div>"
        "<div id='result' class='response'></div>"
    )
    return _page(prefix, f"{service.value.upper()} Service Testing", body, script)


def cross_service_page(prefix: str) -> str:
    script = _RENDER_RESULT + (
        "async function run(mode){setBusy(true);document.getElementById('result').innerHTML='';"
        "try{const res=await fetch('/api/cross-service/'+mode,{method:'POST'});"
        "if(res.ok){show(await res.json());}}finally{setBusy(false);}}"
    )
    body = (
        "<div class='test-buttons'>"
        "<button class='test-btn' onclick=\"run('a-to-b')\">Service A &rarr; Service B</button>"
        "<button class='test-btn' onclick=\"run('b-to-a')\">Service B &rarr; Service A</button>"
        "<button class='test-btn' onclick=\"run('both')\">Test Both Directions</button>"
        "</div>"
        "<div id='loading' class='loading' style='display:none'>Running test...</div>"
        "<div id='result' class='result'></div>"
    )
    return _page(prefix, "Cross-Service Communication Testing", body, script)


# ---------------------------------------------------------------------------
# FastAPI application


def create_app(settings: Optional[Settings] = None, adapter: Optional[HttpClientAdapter] = None) -> FastAPI:
    settings = settings or load_settings()
    adapter = adapter or HttpClientAdapter(timeout=settings.timeout)
    prefix = "/" + settings.ui_prefix.strip("/") if settings.ui_prefix.strip("/") else ""

    aggregator = HealthAggregator(adapter, settings)
    poller = HealthPoller(aggregator, interval=settings.refresh_interval)
    testers: Dict[ServiceName, EndpointTester] = {
        name: EndpointTester(name, adapter, settings) for name in ServiceName
    }
    runner = CrossServiceRunner(adapter, settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        for tester in testers.values():
            tester.surface.activate()
        runner.surface.activate()
        poller.start()
        try:
            yield
        finally:
            # stop periodic probing and drop anything still in flight
            await poller.stop()
            for tester in testers.values():
                tester.surface.deactivate()
            runner.surface.deactivate()

    app = FastAPI(title="ServiceDashboard", lifespan=lifespan)
    app.state.settings = settings
    app.state.aggregator = aggregator
    app.state.poller = poller
    app.state.testers = testers
    app.state.runner = runner

    def _tester(service: str) -> EndpointTester:
        name = ServiceName.parse(service)
        if name is None:
            raise HTTPException(status_code=404, detail="unknown service")
        return testers[name]

    # -- pages --------------------------------------------------------------
    if prefix:

        @app.get("/", include_in_schema=False)
        async def root() -> RedirectResponse:
            return RedirectResponse(url=f"{prefix}/")

    @app.get(f"{prefix}/", response_class=HTMLResponse)
    async def dashboard() -> str:
        return dashboard_page(prefix, settings.refresh_interval)

    @app.get(f"{prefix}/cross-service", response_class=HTMLResponse)
    async def cross_service() -> str:
        return cross_service_page(prefix)

    @app.get(prefix + "/{service}", response_class=HTMLResponse)
    async def service_test(service: str) -> str:
        return service_page(prefix, _tester(service).service)

    # -- api ----------------------------------------------------------------
    @app.get("/api/health")
    async def health() -> Dict[str, Any]:
        return aggregator.as_dict()

    @app.post("/api/health/refresh")
    async def refresh_health() -> Dict[str, Any]:
        result = await aggregator.refresh()
        if result is None:
            raise HTTPException(status_code=409, detail="health check already running")
        return aggregator.as_dict()

    @app.get("/api/services/{service}/endpoints")
    async def service_endpoints(service: str) -> list:
        return [
            {"name": ep.display_name, "path": ep.path, "method": ep.method.value}
            for ep in _tester(service).endpoints
        ]

    @app.post("/api/services/{service}/test")
    async def test_endpoint(service: str, req: EndpointTestRequest) -> Dict[str, Any]:
        tester = _tester(service)
        try:
            descriptor = tester.find(req.name)
        except KeyError:
            raise HTTPException(status_code=404, detail="unknown endpoint") from None
        outcome = await tester.invoke(descriptor)
        if outcome is None:
            raise HTTPException(status_code=409, detail="test already running")
        return outcome.as_dict()

    @app.post("/api/cross-service/{mode}")
    async def cross_service_test(mode: str) -> Dict[str, Any]:
        outcome = await runner.execute(mode)
        if outcome is None:
            raise HTTPException(status_code=409, detail="test already running")
        return outcome.as_dict()

    if settings.dev_proxy:
        _mount_dev_proxy(app, settings, adapter)

    return app


def _mount_dev_proxy(app: FastAPI, settings: Settings, adapter: HttpClientAdapter) -> None:
    """Forward ``/service-a/*`` and ``/service-b/*`` to the gateway."""

    async def forward(request: Request, service: str, path: str) -> Response:
        url = settings.url_for(service, f"/{path}")
        headers = {k: v for k, v in request.headers.items() if k.lower() not in HOP_HEADERS}
        async with adapter.client() as client:
            try:
                resp = await client.request(
                    request.method,
                    url,
                    params=request.query_params,
                    content=await request.body(),
                    headers=headers,
                )
            except httpx.HTTPError as exc:
                logger.warning("proxy %s failed: %s", url, exc)
                raise HTTPException(status_code=502, detail=str(exc) or type(exc).__name__) from exc
        out_headers = {k: v for k, v in resp.headers.items() if k.lower() not in HOP_HEADERS}
        return Response(content=resp.content, status_code=resp.status_code, headers=out_headers)

    def _route(service: str):
        async def proxy(request: Request, path: str) -> Response:
            return await forward(request, service, path)

        return proxy

    for name in ServiceName:
        app.add_api_route(
            f"/{name.value}/{{path:path}}",
            _route(name.value),
            methods=["GET", "POST", "PUT", "DELETE"],
            include_in_schema=False,
        )

