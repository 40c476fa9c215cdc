import html
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from pydantic import BaseModel

from zip_mapping.diagnostics import Diagnostics
from zip_mapping.models import RegionSummary

logger = logging.getLogger(__name__)

COLUMNS = ["region_id", "incident_count", "population", "incidents_per_100k", "median_income"]


class CorrelationResult(BaseModel):
    rho: Optional[float] = None
    n: int
    method: str = "spearman"


def summary_frame(summary: Sequence[RegionSummary]) -> pd.DataFrame:
    return pd.DataFrame([s.model_dump() for s in summary], columns=COLUMNS)


def spearman(summary: Sequence[RegionSummary]) -> CorrelationResult:
    """Spearman rank correlation of median income against incidents per 100k."""
    df = summary_frame(summary)
    n = len(df)
    if n < 3:
        return CorrelationResult(rho=None, n=n)
    rho = df["median_income"].corr(df["incidents_per_100k"], method="spearman")
    return CorrelationResult(rho=None if np.isnan(rho) else float(rho), n=n)


def plot_summary(summary: Sequence[RegionSummary], path: Union[str, Path], result: Optional[CorrelationResult] = None) -> Path:
    df = summary_frame(summary)
    result = result or spearman(summary)

    fig, ax = plt.subplots(figsize=(9, 6))
    ax.scatter(df["median_income"], df["incidents_per_100k"], s=14, alpha=0.7)
    ax.set_xscale("log")
    ax.set_xlabel("Median household income (USD)")
    ax.set_ylabel("Shooting incidents per 100k residents")
    title = "NYC ZIP codes"
    if result.rho is not None:
        title += f"  (Spearman rho = {result.rho:.2f}, n = {result.n})"
    ax.set_title(title)
    plt.tight_layout()

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=200)
    plt.close(fig)
    logger.info("saved %s", path)
    return path


def write_html_report(summary: Sequence[RegionSummary], result: CorrelationResult, diagnostics: Diagnostics,
                      path: Union[str, Path], image: Optional[Union[str, Path]] = None) -> Path:
    df = summary_frame(summary).sort_values("incidents_per_100k", ascending=False)
    rho = "n/a" if result.rho is None else f"{result.rho:.3f}"

    parts = [
        "<!DOCTYPE html>",
        "<html><head><meta charset='utf-8'><title>Gun violence vs income by ZIP</title></head><body>",
        "<h1>Shooting incidents vs median household income, NYC ZIP codes</h1>",
        f"<p>Spearman rank correlation: <b>{rho}</b> over {result.n} ZIP codes.</p>",
    ]
    if image is not None:
        parts.append(f"<img src='{html.escape(Path(image).name)}' width='800'>")
    parts.append("<h2>Excluded data</h2>")
    parts.append(pd.Series(diagnostics.as_dict(), name="count").to_frame().to_html())
    parts.append("<h2>ZIP codes</h2>")
    parts.append(df.to_html(index=False, float_format=lambda v: f"{v:,.2f}"))
    parts.append("</body></html>")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(parts), encoding="utf-8")
    logger.info("saved %s", path)
    return path


def write_summary_csv(summary: Sequence[RegionSummary], path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    summary_frame(summary).to_csv(path, index=False)
    return path


def read_summary_csv(path: Union[str, Path]) -> List[RegionSummary]:
    df = pd.read_csv(path, dtype={"region_id": str})
    return [RegionSummary(**row) for row in df[COLUMNS].to_dict(orient="records")]
