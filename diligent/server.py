# diligent/server.py
import json
from typing import List, Tuple

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel

import diligent.config as config
from diligent import __version__
from diligent.audit import persist_report
from diligent.catalog import checks_for, detect_os, load_catalog
from diligent.driver import run_checks
from diligent.engine import Analyzer
from diligent.bedrock import BedrockClient
from diligent.errors import CatalogError, CredentialsError, StoreError
from diligent.models import AnalysisItem, Check, Report
from diligent.oracle import BedrockJudge
from diligent.store import ReportStore

app = FastAPI(title="diligent", version=__version__)


# ======================================================
# Models
# ======================================================

class AnalyzeIn(BaseModel):
    command: str
    prompt: str


class HealthOut(BaseModel):
    ok: bool
    os_name: str
    catalog_loaded: bool
    catalog_size: int
    model_id: str


class ReportSummary(BaseModel):
    id: int
    date: str
    size: int


# ======================================================
# Dependencies (overridable in tests)
# ======================================================

def get_settings() -> config.Settings:
    return config.settings


def get_os_name() -> str:
    return detect_os()


def get_checks(
    s: config.Settings = Depends(get_settings),
    os_name: str = Depends(get_os_name),
) -> Tuple[Check, ...]:
    try:
        return checks_for(load_catalog(s.catalog_path), os_name)
    except CatalogError as e:
        raise HTTPException(status_code=500, detail=str(e))


def get_bedrock_client(s: config.Settings = Depends(get_settings)) -> BedrockClient:
    try:
        client = BedrockClient.from_settings(s)
        client.require_credentials()
    except CredentialsError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return client


def get_analyzer(
    s: config.Settings = Depends(get_settings),
    os_name: str = Depends(get_os_name),
    client: BedrockClient = Depends(get_bedrock_client),
) -> Analyzer:
    return Analyzer.from_settings(BedrockJudge.from_settings(s, os_name, client=client), s)


def get_store(s: config.Settings = Depends(get_settings)) -> ReportStore:
    try:
        return ReportStore(s.db_path)
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e))


# ======================================================
# Health
# ======================================================

@app.get("/health", response_model=HealthOut)
def health(
    s: config.Settings = Depends(get_settings),
    os_name: str = Depends(get_os_name),
):
    try:
        size = len(checks_for(load_catalog(s.catalog_path), os_name))
        loaded = True
    except CatalogError:
        size = 0
        loaded = False

    return HealthOut(
        ok=loaded,
        os_name=os_name,
        catalog_loaded=loaded,
        catalog_size=size,
        model_id=s.bedrock_model_id,
    )


# ======================================================
# Analysis
# ======================================================

@app.post("/analyze", response_model=AnalysisItem, response_model_exclude_none=True)
def analyze(body: AnalyzeIn, analyzer: Analyzer = Depends(get_analyzer)):
    return analyzer.analyze(body.prompt, body.command, 0)


@app.post("/scan", response_model=Report, response_model_exclude_none=True)
def scan(
    s: config.Settings = Depends(get_settings),
    os_name: str = Depends(get_os_name),
    checks: Tuple[Check, ...] = Depends(get_checks),
    analyzer: Analyzer = Depends(get_analyzer),
    store: ReportStore = Depends(get_store),
):
    report = run_checks(checks, analyzer, workers=s.workers, os_name=os_name)
    persist_report(report, report_path=None, store=store)
    return report


# ======================================================
# Stored reports
# ======================================================

@app.get("/reports", response_model=List[ReportSummary])
def list_reports(limit: int = 10, store: ReportStore = Depends(get_store)):
    return store.recent(limit)


@app.get("/reports/{log_id}")
def get_report(log_id: int, store: ReportStore = Depends(get_store)):
    row = store.get(log_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"report {log_id} not found")
    return json.loads(row["content"])
