"""CLI for healthsnap: run the analytics over a health export file."""

from __future__ import annotations

import json
import logging
from datetime import datetime

import click

from healthsnap.config import get_settings
from healthsnap.metrics import REGISTRY, Frequency, MetricNotFound

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


def _service(file: str):
    from healthsnap.analytics.pipeline import HealthSnapshotService
    from healthsnap.source import ExportFormatError, JsonExportSource

    settings = get_settings()
    try:
        source = JsonExportSource.from_file(file, tz=settings.tzinfo)
    except ExportFormatError as exc:
        raise click.ClickException(str(exc)) from exc
    return HealthSnapshotService(source, settings=settings)


def _write(output: str | None, payload) -> None:
    if output:
        with open(output, "w") as f:
            json.dump(payload, f, indent=2)
        click.echo(f"\nWritten to {output}")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug output.")
def main(verbose: bool) -> None:
    """healthsnap — health metric aggregation and sleep summaries."""
    level = logging.DEBUG if verbose else get_settings().log_level
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@main.command("metrics")
def metrics_cmd() -> None:
    """List the supported metrics."""
    for metric in REGISTRY.sorted():
        polarity = "lower" if metric.lower_is_better else "higher"
        zeros = " zero-fill" if metric.fill_gaps else ""
        click.echo(
            f"  {metric.id:<32} {metric.unit:<12} {metric.aggregation.value:<8} "
            f"{metric.frequency.value:<7} {polarity} is better{zeros}"
        )


@main.command("aggregate")
@click.argument("file", type=click.Path(exists=True))
@click.argument("metric_id")
@click.option("--frequency", "-f", type=click.Choice([f.value for f in Frequency]),
              default=None, help="Bucket width (default: the metric's own).")
@click.option("--start", type=click.DateTime(DATE_FORMATS), default=None,
              help="Window start (default: 7 days before --end).")
@click.option("--end", type=click.DateTime(DATE_FORMATS), default=None,
              help="Window end (default: now).")
@click.option("--fill-gaps/--no-fill-gaps", default=None,
              help="Override zero-filling of missing buckets.")
@click.option("--output", "-o", default=None, help="Write the series as JSON.")
def aggregate_cmd(
    file: str,
    metric_id: str,
    frequency: str | None,
    start: datetime | None,
    end: datetime | None,
    fill_gaps: bool | None,
    output: str | None,
) -> None:
    """Aggregate one metric from an export file."""
    from healthsnap.analytics.summary import series_stats
    from healthsnap.metrics import format_value

    service = _service(file)
    try:
        metric = service.registry.lookup(metric_id)
        values = service.metric_series(
            metric_id, start=start, end=end, frequency=frequency, fill_gaps=fill_gaps,
        )
    except MetricNotFound as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"{metric.display_name} ({metric.unit})")
    if not values:
        click.echo("No data was found for this metric and time span.")
    for v in values:
        click.echo(f"  {v.date:<20} {format_value(metric, v.value)}")

    if values:
        stats = series_stats(values)
        click.echo(f"\n  min {format_value(metric, stats.min)}  "
                   f"max {format_value(metric, stats.max)}  "
                   f"mean {format_value(metric, stats.mean)}")

    _write(output, [v.to_dict() for v in values])


@main.command("sleep")
@click.argument("file", type=click.Path(exists=True))
@click.option("--start", type=click.DateTime(DATE_FORMATS), default=None,
              help="Window start (default: 7 days before --end).")
@click.option("--end", type=click.DateTime(DATE_FORMATS), default=None,
              help="Window end (default: now).")
@click.option("--output", "-o", default=None, help="Write nightly metrics as JSON.")
def sleep_cmd(
    file: str,
    start: datetime | None,
    end: datetime | None,
    output: str | None,
) -> None:
    """Summarise sleep per night from an export file."""
    service = _service(file)
    rows = service.sleep_metrics(start=start, end=end)

    if not rows:
        click.echo("No sleep data was found for this time span.")
    for row in rows:
        click.echo(f"  {row.ymd}  {row.duration:5.2f} h  "
                   f"{row.interruption_count} interruption(s), "
                   f"{row.interruption_seconds / 60.0:.1f} min")

    _write(output, [row.to_dict() for row in rows])


@main.command("snapshot")
@click.argument("file", type=click.Path(exists=True))
@click.option("--now", type=click.DateTime(DATE_FORMATS), default=None,
              help="Reference time (default: now).")
def snapshot_cmd(file: str, now: datetime | None) -> None:
    """Show today's steps and walking/running distance."""
    service = _service(file)
    snap = service.snapshot(now)
    click.echo(f"Steps: {int(snap['stepCount']):,}")
    click.echo(f"Miles: {snap['distanceWalkingRunning']:.2f}")


if __name__ == "__main__":
    main()
