# narrator/api/server.py  (POST /query: prompt + line -> Gemini text -> Google TTS mp3)
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ValidationError as RequestModelError

from narrator import __version__
from narrator.api.middleware import RequestLogMiddleware
from narrator.audio.tts import GoogleTTSClient
from narrator.config import Settings, load_settings
from narrator.errors import PipelineFailed
from narrator.llm.gemini_client import GeminiClient
from narrator.ops.log_sink import LogSink
from narrator.pipeline.query import (
    FAIL_VALIDATION,
    GENERATION_KEY,
    SYNTHESIS_KEY,
    PersistencePolicy,
    QueryPipeline,
)
from narrator.storage.artifacts import ArtifactStore

log = logging.getLogger("narrator.server")

OUTPUT_MOUNT = "/output"


class QueryIn(BaseModel):
    prompt: str
    line: str


def build_pipeline(settings: Settings, client: httpx.AsyncClient, sink: LogSink) -> QueryPipeline:
    timeout = settings.http.timeout_s
    generator = GeminiClient(client, url=settings.generation.url, timeout=timeout)
    synthesizer = GoogleTTSClient(
        client,
        url=settings.synthesis.url,
        language_code=settings.synthesis.language_code,
        voice_name=settings.synthesis.voice_name,
        audio_encoding=settings.synthesis.audio_encoding,
        timeout=timeout,
    )
    store = ArtifactStore(settings.server.output_dir, public_prefix=OUTPUT_MOUNT)
    policy = PersistencePolicy(
        text_fatal=settings.pipeline.text_write_fatal,
        audio_fatal=settings.pipeline.audio_write_fatal,
    )
    return QueryPipeline(
        generator,
        synthesizer,
        store,
        secrets={GENERATION_KEY: settings.generation_key, SYNTHESIS_KEY: settings.synthesis_key},
        sink=sink,
        policy=policy,
        serialize_same_key=settings.pipeline.serialize_same_key,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=logging.INFO)
    settings: Settings = app.state.settings
    Path(settings.server.output_dir).mkdir(parents=True, exist_ok=True)

    sink = LogSink(settings.server.log_path, secrets=settings.secrets()).open()
    client = httpx.AsyncClient(timeout=settings.http.timeout_s, transport=app.state.transport)
    app.state.sink = sink
    app.state.http = client
    app.state.pipeline = build_pipeline(settings, client, sink)

    missing = [n for n, v in (("GEMINI_API_KEY", settings.generation_key),
                              ("GOOGLE_TTS_API_KEY", settings.synthesis_key)) if not v]
    if missing:
        log.warning("Missing secrets %s; /query will answer 500 until they are set", ", ".join(missing))
    log.info("Server starting...")
    sink.log(f"Server is running on port {settings.server.port}")
    try:
        yield
    finally:
        await client.aclose()
        log.info("Server stopping...")
        sink.log("Server stopping")
        sink.close()


async def _read_query(request: Request) -> QueryIn:
    content_type = request.headers.get("content-type", "").lower()
    if "application/json" in content_type:
        try:
            payload = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid JSON")
    elif "application/x-www-form-urlencoded" in content_type or "multipart/form-data" in content_type:
        form = await request.form()
        payload = {k: v for k, v in form.items() if isinstance(v, str)}
    else:
        raise HTTPException(status_code=415, detail="Unsupported Content-Type")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="expected an object with prompt and line")
    try:
        return QueryIn.model_validate(payload)
    except RequestModelError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        msg = "prompt and line are required strings; bad field(s): " + ", ".join(fields)
        raise HTTPException(status_code=400, detail={"stage": FAIL_VALIDATION, "error": msg})


def create_app(settings: Optional[Settings] = None,
               transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    settings = settings or load_settings()

    app = FastAPI(title="Narrator", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.transport = transport

    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False, allow_methods=["*"], allow_headers=["*"],
    )

    public_dir = Path(settings.server.public_dir)

    @app.get("/", include_in_schema=False)
    def index():
        html_path = public_dir / "index.html"
        if not html_path.exists():
            return JSONResponse({"ok": False, "error": "UI not found", "expected_path": str(html_path)},
                                status_code=404)
        return FileResponse(html_path, headers={"Cache-Control": "no-store, max-age=0"})

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.get("/version")
    def version():
        return {"name": "narrator", "version": __version__}

    @app.post("/query")
    async def query(request: Request) -> Dict[str, Any]:
        body = await _read_query(request)
        pipeline: QueryPipeline = request.app.state.pipeline
        try:
            result = await pipeline.run(body.prompt, body.line)
        except PipelineFailed as e:
            status = 400 if e.stage == FAIL_VALIDATION else 500
            raise HTTPException(status_code=status, detail={"stage": e.stage, "error": e.message})
        return result.to_response()

    app.mount(OUTPUT_MOUNT, StaticFiles(directory=settings.server.output_dir, check_dir=False), name="output")
    app.mount("/", StaticFiles(directory=str(public_dir), html=True, check_dir=False), name="public")
    return app


app = create_app()
