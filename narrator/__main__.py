"""
python -m narrator serve [--host H] [--port P] [--reload]
python -m narrator query --prompt "Chapter 1" --line "Hello world."
"""
import argparse
import asyncio
import json
import logging
import os
import sys

import httpx

from narrator.config import load_settings
from narrator.errors import PipelineFailed
from narrator.ops.log_sink import LogSink


async def _run_query(settings, prompt: str, line: str) -> dict:
    from narrator.api.server import build_pipeline

    with LogSink(settings.server.log_path, secrets=settings.secrets()) as sink:
        async with httpx.AsyncClient(timeout=settings.http.timeout_s) as client:
            pipeline = build_pipeline(settings, client, sink)
            result = await pipeline.run(prompt, line)
    out = result.to_response()
    out["timings"] = result.timings
    return out


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(prog="narrator")
    ap.add_argument("--config", default=None, help="YAML config (default configs/narrator.yaml)")
    sub = ap.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("serve", help="run the HTTP server")
    sp.add_argument("--host", default=None)
    sp.add_argument("--port", type=int, default=None)
    sp.add_argument("--reload", action="store_true")

    qp = sub.add_parser("query", help="run one prompt/line through the pipeline")
    qp.add_argument("--prompt", required=True)
    qp.add_argument("--line", required=True)

    args = ap.parse_args(argv)
    settings = load_settings(args.config)

    if args.cmd == "serve":
        import uvicorn

        if args.config:
            os.environ["NARRATOR_CONFIG"] = args.config

        uvicorn.run(
            "narrator.api.server:app",
            host=args.host or settings.server.host,
            port=args.port or settings.server.port,
            reload=args.reload,
        )
        return 0

    logging.basicConfig(level=logging.INFO)
    try:
        out = asyncio.run(_run_query(settings, args.prompt, args.line))
    except PipelineFailed as e:
        print(f"failed at {e.stage}: {e.message}", file=sys.stderr)
        return 1
    print(json.dumps(out, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
