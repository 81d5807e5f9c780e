"""Post-processing utilities for model run outputs.

This module loads a completed run's output from where the execution
pipeline stored it and reduces it to the per-metric summary shown on the
results page.
"""

import json
import logging
from pathlib import Path
from typing import Any
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx
import numpy as np
import pandas as pd

from ..api.v1.schemas.simulation import MetricSummary, ModelOutputSummary

logger = logging.getLogger(__name__)


class ResultsUnavailableError(Exception):
    """Raised when a run's output cannot be read or understood."""


async def load_model_output(location: str, timeout: float = 30.0) -> dict[str, Any]:
    """Load a model output document.

    Parameters
    ----------
    location : str
        ``file://`` URI of a local file (local mode fixtures) or an
        ``http(s)://`` URL of the stored output.
    timeout : float
        Timeout in seconds for remote reads.

    Returns
    -------
    dict
        Decoded JSON document.

    Raises
    ------
    ResultsUnavailableError
        If the location scheme is unknown or the document cannot be read.
    """
    parsed = urlparse(location)
    try:
        if parsed.scheme == "file":
            path = Path(url2pathname(parsed.path))
            return json.loads(path.read_text(encoding="utf-8"))
        if parsed.scheme in ("http", "https"):
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.get(location)
                response.raise_for_status()
                return response.json()
    except (OSError, ValueError, httpx.HTTPError) as e:
        raise ResultsUnavailableError(f"Could not read results from {location}: {e}") from e
    raise ResultsUnavailableError(f"Unsupported results location: {location}")


def output_dates(time: dict[str, Any]) -> list[str]:
    """Convert an output's time axis into calendar dates.

    Parameters
    ----------
    time : dict
        Output ``time`` block with ``t0`` (ISO date) and ``timestamps``
        (days since ``t0``).

    Returns
    -------
    list of str
        Dates as YYYY-MM-DD.
    """
    t0 = pd.Timestamp(time["t0"])
    offsets = pd.to_timedelta(np.asarray(time["timestamps"], dtype=float), unit="D")
    return (t0 + offsets).strftime("%Y-%m-%d").tolist()


def summarize_model_output(
    output: dict[str, Any], metrics: list[str] | None = None
) -> ModelOutputSummary:
    """Compute peak and final values for each aggregate metric.

    Parameters
    ----------
    output : dict
        Model output with ``time`` and ``aggregate.metrics`` blocks.
    metrics : list of str or None
        If provided, only summarise these metrics.

    Returns
    -------
    ModelOutputSummary
        Dates and per-metric summaries. Metrics whose length does not match
        the time axis, or that hold no numbers, are left out.

    Raises
    ------
    ResultsUnavailableError
        If the output has no usable time axis.
    """
    try:
        dates = output_dates(output["time"])
    except (KeyError, TypeError, ValueError) as e:
        raise ResultsUnavailableError(f"Model output has no usable time axis: {e}") from e

    summaries: dict[str, MetricSummary] = {}
    for name, values in output.get("aggregate", {}).get("metrics", {}).items():
        if metrics is not None and name not in metrics:
            continue

        try:
            series = np.asarray(values, dtype=float)
        except (TypeError, ValueError):
            logger.warning(f"Skipping metric '{name}': values are not numeric")
            continue
        if series.shape != (len(dates),) or np.all(np.isnan(series)):
            logger.warning(f"Skipping metric '{name}': {series.size} values for {len(dates)} dates")
            continue

        peak_idx = int(np.nanargmax(series))
        summaries[name] = MetricSummary(
            peak=float(series[peak_idx]),
            peak_date=dates[peak_idx],
            final=float(series[-1]),
        )

    return ModelOutputSummary(dates=dates, metrics=summaries)
