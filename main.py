"""Prometheus Blacklight: HTTP API.

Two kinds of endpoints:

1. Engine endpoints take the raw Prometheus payloads in the request body and
   run the pure analysis functions over them. No server access, so a
   frontend that already fetched /api/v1/status/tsdb itself can reuse them.

2. GET /api/report fetches from the configured server (PROMETHEUS_URL, or
   the bundled fixtures when unset) and returns the full report.

Run locally:
    uv run uvicorn main:app --reload
"""

import logging
import logging.handlers
import os
import pathlib
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

load_dotenv()

from core import engine
from core.runtime import BlacklightRuntime
from integrations.prometheus import FetchError, client_from_env, parse_targets, parse_tsdb_status
from schemas.analysis import HistogramCandidate, LabelRisk, MetricTree
from schemas.finding import Finding
from schemas.report import AnalysisReport
from schemas.simulation import SimulationAction, SimulationImpact

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_FILE = pathlib.Path(__file__).parent / "blacklight.log"
LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_file_handler = logging.handlers.RotatingFileHandler(
    LOG_FILE, maxBytes=1_000_000, backupCount=3, encoding="utf-8",
)
_file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

_root_logger = logging.getLogger()
_root_logger.setLevel(logging.INFO)
_root_logger.addHandler(_file_handler)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App + CORS
# ---------------------------------------------------------------------------

app = FastAPI(title="Prometheus Blacklight")

# ALLOWED_ORIGINS env var overrides the default for production deployments.
_origins = os.environ.get("ALLOWED_ORIGINS", "http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class AnalyzeRequest(BaseModel):
    """Raw `data` objects from /api/v1/status/tsdb and /api/v1/targets."""
    tsdb_status: dict[str, Any]
    targets: dict[str, Any] | None = None


class AnalyzeResponse(BaseModel):
    histograms: list[HistogramCandidate]
    labels: list[LabelRisk]
    findings: list[Finding]


class TreeRequest(BaseModel):
    """One metric's series as returned by /api/v1/series."""
    metric: str
    total_series: int = Field(ge=0)
    series: list[dict[str, str]] = []


class SimulateRequest(BaseModel):
    tsdb_status: dict[str, Any]
    actions: list[SimulationAction] = []


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Engine endpoints
# ---------------------------------------------------------------------------

@app.post("/api/analyze", response_model=AnalyzeResponse)
def analyze(body: AnalyzeRequest):
    """Score histograms, classify labels and build the findings list."""
    snapshot = parse_tsdb_status(body.tsdb_status)
    targets = parse_targets(body.targets) if body.targets is not None else None

    findings = engine.recommend(snapshot, targets)
    logger.info(
        "Analyzed snapshot with %d series: %d findings.",
        snapshot.total_series,
        len(findings),
    )
    return AnalyzeResponse(
        histograms=engine.score_histograms(snapshot),
        labels=engine.classify_labels(snapshot),
        findings=findings,
    )


@app.post("/api/tree", response_model=MetricTree)
def tree(body: TreeRequest):
    """Build the label multiplier tree for one metric."""
    return engine.build_multiplier_tree(body.metric, body.total_series, body.series)


@app.post("/api/simulate", response_model=SimulationImpact)
def simulate(body: SimulateRequest):
    """Estimate the cumulative impact of the given actions."""
    snapshot = parse_tsdb_status(body.tsdb_status)
    return engine.estimate_impact(snapshot, body.actions)


# ---------------------------------------------------------------------------
# Live report
# ---------------------------------------------------------------------------

@app.get("/api/report", response_model=AnalysisReport)
async def report():
    """Fetch from the configured server and return the full report.

    Endpoints that failed are listed under errors. Returns 502 only if
    every endpoint failed.
    """
    runtime = BlacklightRuntime(client_from_env())
    try:
        return await runtime.report()
    except FetchError as exc:
        logger.error("Report failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc))
