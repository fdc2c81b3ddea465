from __future__ import annotations

import datetime as dt
import logging

from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse

from . import runner
from .config import get_settings

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

app = FastAPI(title="Rhino Schedule Sync", version="1.0.0")


def _timestamp() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


@app.options("/")
def preflight() -> Response:
    return Response(status_code=204, headers=CORS_HEADERS)


# plain def: playwright's sync API must not run on the event loop thread
@app.api_route("/", methods=["GET", "POST"])
def sync_schedule() -> JSONResponse:
    logging.info("Starting schedule sync")
    try:
        report = runner.run(get_settings())
    except Exception as exc:
        logging.exception("Sync failed")
        return JSONResponse(
            status_code=500,
            headers=CORS_HEADERS,
            content={"success": False, "error": str(exc), "timestamp": _timestamp()},
        )

    logging.info("Schedule sync completed")
    return JSONResponse(
        status_code=200,
        headers=CORS_HEADERS,
        content={
            "success": True,
            "message": "Schedule sync completed successfully",
            "timestamp": _timestamp(),
            "report": report.to_dict(),
        },
    )
