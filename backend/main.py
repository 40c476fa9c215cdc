from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from typing import List

from backend import engine
from backend.models import CorrelationResponse, ZipSummary
from zip_mapping.config import settings
from zip_mapping.models import normalize_region_id

app = FastAPI(title=settings.PROJECT_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # For dev; narrow this down for production!
    allow_methods=["*"],
    allow_headers=["*"],
)


def _rows():
    rows = engine.load_summary()
    if rows is None:
        raise HTTPException(status_code=404, detail="No summary yet. Run the zip-violence pipeline first.")
    return rows


@app.get("/api/summary", response_model=List[ZipSummary])
async def get_summary():
    return [r.model_dump() for r in _rows()]


@app.get("/api/summary/{region_id}", response_model=ZipSummary)
async def get_region(region_id: str):
    rows = _rows()
    row = engine.find_region(rows, normalize_region_id(region_id) or region_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"ZIP {region_id} not in summary")
    return row.model_dump()


@app.get("/api/correlation", response_model=CorrelationResponse)
async def get_correlation():
    return engine.correlation(_rows()).model_dump()
