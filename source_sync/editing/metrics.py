"""
Mutation metrics — tracks mutation outcomes in a JSONL log file.
"""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

_METRICS_DIR = ".sourcesync"
_METRICS_FILE = "mutation_metrics.jsonl"


def _metrics_path(metrics_dir: str | None = None) -> str:
    """Return the absolute path to the metrics file."""
    base = metrics_dir or os.path.join(os.getcwd(), _METRICS_DIR)
    return os.path.join(base, _METRICS_FILE)


def log_mutation_metric(data: dict, metrics_dir: str | None = None) -> None:
    """Append a single mutation metric entry to the JSONL log.

    Parameters
    ----------
    data:
        Metric fields to log (document, operation, status, duration_ms, etc.).
    metrics_dir:
        Directory holding the log. Defaults to ``.sourcesync`` under CWD.
    """
    path = _metrics_path(metrics_dir)
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        entry = {"timestamp": datetime.now(timezone.utc).isoformat()}
        entry.update(data)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as exc:
        logger.warning("[Metrics] Failed to write metrics: %s", exc)


def read_mutation_stats(
    last_n: int = 50,
    metrics_dir: str | None = None,
) -> dict:
    """Compute rolling statistics from the metrics log.

    Parameters
    ----------
    last_n:
        Number of most-recent entries to include.
    metrics_dir:
        Directory holding the log.

    Returns
    -------
    dict
        Statistics including total_mutations, applied_rate, no_change_rate,
        avg_duration_ms, operations and failures (status → percentage).
    """
    path = _metrics_path(metrics_dir)

    entries: list[dict] = []
    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        try:
                            entries.append(json.loads(line))
                        except json.JSONDecodeError:
                            continue
        except OSError as exc:
            logger.warning("[Metrics] Failed to read metrics: %s", exc)

    # Take last N entries
    entries = entries[-last_n:]

    if not entries:
        return {
            "total_mutations": 0,
            "applied_rate": 0.0,
            "no_change_rate": 0.0,
            "avg_duration_ms": 0.0,
            "operations": {},
            "failures": {},
        }

    total = len(entries)
    durations = [e["duration_ms"] for e in entries if "duration_ms" in e]
    statuses = Counter(e.get("status", "unknown") for e in entries)
    operations = Counter(e.get("operation", "unknown") for e in entries)
    failures = {
        status: count / total * 100
        for status, count in statuses.most_common()
        if status not in ("applied", "no_change")
    }

    return {
        "total_mutations": total,
        "applied_rate": statuses.get("applied", 0) / total * 100,
        "no_change_rate": statuses.get("no_change", 0) / total * 100,
        "avg_duration_ms": sum(durations) / len(durations) if durations else 0.0,
        "operations": dict(operations.most_common()),
        "failures": failures,
    }
