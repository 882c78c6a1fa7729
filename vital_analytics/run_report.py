"""Command-line utility for building vital-sign reports across users.

The tool expects per-user JSON files named ``<user_id>.json`` inside a data
directory. Each file holds a list of reading records::

    [
        {
            "metric_type": "blood_pressure",
            "timestamp": "2025-01-01T07:00:00Z",
            "primary_value": 140,
            "secondary_value": 90,
            "tags": ["home"]
        },
        ...
    ]

Use ``--user`` repeatedly or provide a newline-delimited ``--user-file``
listing the users to process. Reports are written as JSON to stdout or to
``--output`` if provided.
"""
from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime
from importlib import import_module
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Sequence

import pandas as pd

from vital_analytics.models import Reading
from vital_analytics.report import ReadingSource, ReportBuilder, report_to_dict
from vital_analytics.schemas import MetricConfig, blood_pressure_config, load_metric_configs

logger = logging.getLogger(__name__)


def _load_user_ids(args: argparse.Namespace) -> list[str]:
    user_ids: list[str] = []
    if args.user:
        user_ids.extend(args.user)
    if args.user_file:
        for path in args.user_file:
            with Path(path).open() as handle:
                for line in handle:
                    line = line.strip()
                    if line:
                        user_ids.append(line)
    if not user_ids:
        raise SystemExit("No user IDs provided. Use --user or --user-file.")
    return user_ids


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value is None:
        raise ValueError("Reading record missing timestamp")
    try:
        return pd.Timestamp(value).to_pydatetime()
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Unparseable timestamp {value!r}") from exc


def _record_to_reading(record: Any) -> tuple[str, Reading]:
    """Convert a raw record into ``(metric_type, Reading)``."""

    if not isinstance(record, Mapping):
        raise TypeError("Unsupported record type returned by reading fetcher")

    metric_type = record.get("metric_type")
    if not metric_type:
        raise ValueError("Reading record missing metric_type")
    if record.get("primary_value") is None:
        raise ValueError("Reading record missing primary_value")

    secondary = record.get("secondary_value")
    tags = record.get("tags") or ()
    if isinstance(tags, str):
        tags = (tags,)
    reading = Reading(
        timestamp=_parse_timestamp(record.get("timestamp")),
        primary_value=float(record["primary_value"]),
        secondary_value=None if secondary is None else float(secondary),
        tags=tuple(str(tag) for tag in tags),
    )
    return str(metric_type), reading


def _is_aware(value: datetime) -> bool:
    return value.tzinfo is not None and value.utcoffset() is not None


def _select(
    records: Iterable[Any],
    metric_type: str,
    start: datetime,
    end: datetime,
) -> list[Reading]:
    """Readings of ``metric_type`` in ``[start, end)``, sorted by timestamp."""

    selected: list[Reading] = []
    for record in records:
        record_metric, reading = _record_to_reading(record)
        if record_metric != metric_type:
            continue
        if _is_aware(reading.timestamp) != _is_aware(start):
            raise ValueError(
                f"Reading timestamp {reading.timestamp.isoformat()} and range start "
                f"{start.isoformat()} must both be naive or both be timezone-aware"
            )
        if start <= reading.timestamp < end:
            selected.append(reading)
    selected.sort(key=lambda reading: reading.timestamp)
    return selected


class JsonDirectorySource:
    """ReadingSource that reads per-user JSON reading files."""

    def __init__(self, root: Path) -> None:
        if not root.is_dir():
            raise ValueError(f"Reading data directory not found: {root}")
        self._root = root

    def fetch(self, user_id: str, metric_type: str, start: datetime, end: datetime) -> Sequence[Reading]:
        file_path = self._root / f"{user_id}.json"
        if not file_path.exists():
            raise FileNotFoundError(f"Missing reading file for user {user_id}: {file_path}")

        with file_path.open() as handle:
            records = json.load(handle)
        if not isinstance(records, list):
            raise ValueError(f"Reading file {file_path} must contain a JSON list")
        return _select(records, metric_type, start, end)


class CallableSource:
    """Wraps a Python callable that returns raw reading records for a user."""

    def __init__(self, fetcher: Callable[[str], Iterable[Any]]) -> None:
        self._fetcher = fetcher

    def fetch(self, user_id: str, metric_type: str, start: datetime, end: datetime) -> Sequence[Reading]:
        return _select(self._fetcher(user_id), metric_type, start, end)


def run(
    user_ids: list[str],
    source: ReadingSource,
    configs: Mapping[str, MetricConfig],
    *,
    metric_type: str,
    start: datetime,
    end: datetime,
) -> dict[str, dict]:
    if start >= end:
        raise ValueError(f"Report start {start.isoformat()} must be before end {end.isoformat()}")
    builder = ReportBuilder(source, configs)

    results: dict[str, dict] = {}
    for user_id in user_ids:
        try:
            report = builder.build(user_id, metric_type, start, end)
        except (FileNotFoundError, ValueError) as exc:
            logger.error("Failed to build %s report for %s: %s", metric_type, user_id, exc)
            raise
        results[user_id] = report_to_dict(report)
    return results


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build vital-sign analytics reports in batch")
    parser.add_argument("--data-dir", type=Path, help="Directory containing <user_id>.json files")
    parser.add_argument("--user", action="append", help="User ID to process (may be repeated)")
    parser.add_argument("--user-file", action="append", help="Path to file with newline-delimited user IDs")
    parser.add_argument(
        "--fetcher",
        help="Python callable (module:function) that returns iterable reading records per user",
    )
    parser.add_argument("--metric", default="blood_pressure", help="Metric type to report on")
    parser.add_argument("--config", type=Path, help="JSON metric configuration; defaults to blood pressure")
    parser.add_argument("--start", type=_parse_timestamp, required=True, help="Inclusive ISO start timestamp")
    parser.add_argument("--end", type=_parse_timestamp, required=True, help="Exclusive ISO end timestamp")
    parser.add_argument("--output", type=Path, help="Optional output JSON file")
    parser.add_argument("--indent", type=int, default=None, help="Pretty-print JSON with the given indent")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _resolve_callable(path: str) -> Callable[[str], Iterable[Any]]:
    try:
        module_name, func_name = path.rsplit(":", 1)
    except ValueError as exc:
        raise ValueError("Fetcher must be in 'module:function' format") from exc
    module = import_module(module_name)
    func = getattr(module, func_name, None)
    if not callable(func):
        raise TypeError(f"{path!r} is not callable")
    return func


def _build_source(args: argparse.Namespace) -> ReadingSource:
    if args.fetcher:
        return CallableSource(_resolve_callable(args.fetcher))
    if not args.data_dir:
        raise SystemExit("Either --data-dir or --fetcher must be provided")
    return JsonDirectorySource(args.data_dir)


def _load_configs(args: argparse.Namespace) -> dict[str, MetricConfig]:
    if args.config:
        return load_metric_configs(args.config)
    config = blood_pressure_config()
    return {config.metric: config}


def main(argv: list[str] | None = None) -> int:  # pragma: no cover - CLI entry point
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    user_ids = _load_user_ids(args)
    source = _build_source(args)
    configs = _load_configs(args)
    if args.metric not in configs:
        raise SystemExit(f"No configuration for metric {args.metric!r}")
    results = run(user_ids, source, configs, metric_type=args.metric, start=args.start, end=args.end)

    output_text = json.dumps(results, indent=args.indent)
    if args.output:
        args.output.write_text(output_text)
    else:
        print(output_text)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
