#!/usr/bin/env python3
"""
netmeter CLI -- latency, jitter, and throughput testing from the terminal.

Usage::

    python speedtest.py                         # rich dashboard
    python speedtest.py --simple                # plain text
    python speedtest.py --json                  # JSON to stdout
    python speedtest.py -o result.json          # save to file
    python speedtest.py --csv log.csv           # append CSV row
    python speedtest.py --history               # show past results
    python speedtest.py --base-url http://host:3000 --submit
    python speedtest.py --cloudflare            # add speed.cloudflare.com
    python speedtest.py --ping-count 30 --save-config
"""
from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import signal
import sys
from typing import Any, Dict, List, Optional

import aiohttp

from netmeter.api import CLOUDFLARE_ENDPOINT, Endpoint, SpeedtestAPI, TestRecord
from netmeter.cancel import CancelToken
from netmeter.config import config_path, load_config, save_config
from netmeter.constants import (
    MAX_CONNECTIONS,
    MAX_DURATION,
    MAX_PING_COUNT,
    MIN_CONNECTIONS,
    MIN_DURATION,
    MIN_PING_COUNT,
)
from netmeter.engine import SpeedtestEngine
from netmeter.errors import ConfigurationError, SpeedtestError, TestCancelled, user_message
from netmeter.history import clear_history, load_history, save_result
from netmeter.logging_setup import configure_logging
from netmeter.transport import open_session, transport_for
from ui.dashboard import (
    ProgressDisplay,
    console,
    print_endpoint_ranking,
    print_final_results,
    print_header,
    print_history,
    print_latency_details,
    print_speed_result,
)
from ui.output import (
    create_result_json,
    format_csv_header,
    format_csv_row,
    format_text_result,
    history_record,
    save_json,
)

logger = logging.getLogger("netmeter.cli")


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(
    ping_count: int,
    download_duration: float,
    upload_duration: float,
    connections: Optional[int],
) -> None:
    """Raise ``ConfigurationError`` if any parameter is out of range."""
    if not MIN_PING_COUNT <= ping_count <= MAX_PING_COUNT:
        raise ConfigurationError(f"Ping count must be between {MIN_PING_COUNT} and {MAX_PING_COUNT}")
    if not MIN_DURATION <= download_duration <= MAX_DURATION:
        raise ConfigurationError(f"Download duration must be between {MIN_DURATION} and {MAX_DURATION} s")
    if not MIN_DURATION <= upload_duration <= MAX_DURATION:
        raise ConfigurationError(f"Upload duration must be between {MIN_DURATION} and {MAX_DURATION} s")
    if connections is not None and not MIN_CONNECTIONS <= connections <= MAX_CONNECTIONS:
        raise ConfigurationError(f"Connections must be between {MIN_CONNECTIONS} and {MAX_CONNECTIONS}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _discover(api: SpeedtestAPI, cloudflare: bool) -> List[Endpoint]:
    try:
        endpoints = await api.fetch_endpoints()
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        if not cloudflare:
            raise
        logger.warning("Endpoint list unavailable (%s); using Cloudflare only", exc)
        endpoints = []
    if cloudflare:
        endpoints = [*endpoints, CLOUDFLARE_ENDPOINT]
    return endpoints


async def _submit(api: SpeedtestAPI, result: Dict[str, Any]) -> None:
    """Best-effort remote submission; never fails the run."""
    record = TestRecord(
        endpoint_id=result["endpoint_id"],
        ping=result["ping"],
        jitter=result["jitter"],
        download_mbps=result["download_mbps"],
        upload_mbps=result["upload_mbps"],
    )
    try:
        stored = await api.submit_result(record)
    except (SpeedtestError, aiohttp.ClientError, asyncio.TimeoutError) as exc:
        logger.warning("Failed to submit result: %s", exc)
        return
    logger.info("Result stored remotely as %s", stored.get("id"))


def _append_csv(
    path: str,
    endpoint_name: str,
    ping_ms: float,
    jitter_ms: float,
    download_mbps: float,
    upload_mbps: float,
) -> None:
    """Append a single CSV row, writing the header if the file is new."""
    write_header = not os.path.isfile(path) or os.path.getsize(path) == 0
    with open(path, "a", encoding="utf-8") as fh:
        if write_header:
            fh.write(format_csv_header() + "\n")
        fh.write(format_csv_row(endpoint_name, ping_ms, jitter_ms, download_mbps, upload_mbps) + "\n")


# ---------------------------------------------------------------------------
# Core test runner
# ---------------------------------------------------------------------------

async def run_speedtest(
    *,
    base_url: str,
    json_output: bool = False,
    output_file: Optional[str] = None,
    csv_file: Optional[str] = None,
    simple: bool = False,
    endpoint_id: Optional[str] = None,
    cloudflare: bool = False,
    ping_count: int = 20,
    download_duration: float = 10.0,
    upload_duration: float = 10.0,
    pretest_duration: float = 3.0,
    connections: Optional[int] = None,
    submit: bool = False,
) -> Dict[str, Any]:
    """Execute the full measurement sequence and return a JSON-serialisable dict."""

    show_ui = not json_output and not simple
    token = CancelToken()
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, token.cancel)

    if show_ui:
        print_header()

    display: Dict[str, Optional[ProgressDisplay]] = {"current": None}

    def _on_phase(phase: str) -> None:
        if display["current"] is not None:
            display["current"].stop()
            display["current"] = None
        if not show_ui:
            return
        labels = {
            "selecting": "Selecting best endpoint...",
            "ping": "Measuring latency...",
            "pretest": "Estimating speed...",
        }
        if phase in labels:
            console.print(f"[dim]{labels[phase]}[/dim]")
        elif phase in ("download", "upload"):
            display["current"] = ProgressDisplay()
            display["current"].start(phase.capitalize())

    def _on_progress(phase: str, snapshot) -> None:  # noqa: ANN001 (ProgressSnapshot)
        if display["current"] is not None:
            display["current"].update(snapshot)

    try:
        async with SpeedtestAPI(base_url) as api, open_session() as session:
            endpoints = await _discover(api, cloudflare)

            engine = SpeedtestEngine(
                lambda e: transport_for(e, session),
                ping_count=ping_count,
                download_duration=download_duration,
                upload_duration=upload_duration,
                pretest_duration=pretest_duration,
                connections=connections,
            )
            engine.on_phase = _on_phase
            engine.on_progress = _on_progress

            report = await engine.run(endpoints, token, endpoint_id)

            if show_ui:
                if len(report.ranking) > 1:
                    print_endpoint_ranking(report.ranking)
                print_latency_details(report.latency)
                print_speed_result(report.download, "Download Results", "green")
                print_speed_result(report.upload, "Upload Results", "blue")
                print_final_results(report)
            elif simple:
                print(format_text_result(
                    report.latency.ping,
                    report.latency.jitter,
                    report.download.mbps,
                    report.upload.mbps,
                    report.endpoint.name,
                    grade=report.quality.grade if report.quality else "",
                ))

            location = api.user_location.to_dict() if api.user_location else None
            result_json = create_result_json(report.to_dict(), location)

            if submit:
                await _submit(api, result_json)
    finally:
        if display["current"] is not None:
            display["current"].stop()
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)

    if json_output:
        print(json.dumps(result_json, indent=2))

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"\n[green]Results saved to:[/green] {output_file}")

    if csv_file:
        _append_csv(
            csv_file,
            endpoint_name=report.endpoint.name,
            ping_ms=report.latency.ping,
            jitter_ms=report.latency.jitter,
            download_mbps=report.download.mbps,
            upload_mbps=report.upload.mbps,
        )
        if not json_output:
            console.print(f"[green]CSV row appended to:[/green] {csv_file}")

    save_result(history_record(result_json))
    return result_json


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser(config: Dict[str, Any]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="netmeter -- latency, jitter and throughput testing",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--csv", type=str, metavar="FILE", default=config["csv_file"] or None, help="Append results as CSV row")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug details")

    # Endpoint selection
    parser.add_argument("--base-url", type=str, default=config["base_url"], metavar="URL", help="Data-plane service URL")
    parser.add_argument("--server", type=str, default=config["endpoint"], metavar="ID", help="Use a specific endpoint instead of ranking")
    parser.add_argument("--cloudflare", action="store_true", help="Add speed.cloudflare.com as a candidate")
    parser.add_argument("--list-servers", action="store_true", help="List available endpoints and exit")

    # Test parameters
    parser.add_argument("--ping-count", type=int, default=config["ping_count"], metavar="N", help="Number of latency probes (default: 20)")
    parser.add_argument("--download-duration", type=float, default=config["download_duration"], metavar="SECS", help="Download test duration in seconds (default: 10)")
    parser.add_argument("--upload-duration", type=float, default=config["upload_duration"], metavar="SECS", help="Upload test duration in seconds (default: 10)")
    parser.add_argument("--connections", type=int, default=config["connections"], metavar="N", help="Fixed connection count (default: adaptive)")

    # Results
    parser.add_argument("--submit", action="store_true", default=config["submit"], help="Store the result on the service")
    parser.add_argument("--history", action="store_true", help="Show past test results and exit")
    parser.add_argument("--remote-history", action="store_true", help="Show results stored on the service and exit")
    parser.add_argument("--clear-history", action="store_true", help="Delete the local history and exit")
    parser.add_argument("--save-config", action="store_true", help="Store the given options as defaults and exit")
    return parser


def _config_from_args(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    updated = dict(config)
    updated.update(
        base_url=args.base_url,
        endpoint=args.server,
        ping_count=args.ping_count,
        download_duration=args.download_duration,
        upload_duration=args.upload_duration,
        connections=args.connections,
        submit=args.submit,
        csv_file=args.csv or "",
    )
    return updated


def main() -> None:
    config = load_config()
    args = build_parser(config).parse_args()

    configure_logging("DEBUG" if args.verbose else config["log_level"], console)

    # History modes
    if args.history:
        print_history(load_history())
        return

    if args.clear_history:
        clear_history()
        console.print("[green]History cleared.[/green]")
        return

    if args.remote_history:
        async def _remote() -> List[Dict[str, Any]]:
            async with SpeedtestAPI(args.base_url) as api:
                return await api.fetch_recent_results(limit=10)
        try:
            print_history(asyncio.run(_remote()))
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            console.print(f"[red]Error: {user_message(exc)}[/red]")
            sys.exit(1)
        return

    # Validate
    try:
        _validate(
            ping_count=args.ping_count,
            download_duration=args.download_duration,
            upload_duration=args.upload_duration,
            connections=args.connections,
        )
    except ConfigurationError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    if args.save_config:
        save_config(_config_from_args(config, args))
        console.print(f"[green]Defaults saved to:[/green] {config_path()}")
        return

    # List-servers mode
    if args.list_servers:
        async def _list() -> List[Endpoint]:
            async with SpeedtestAPI(args.base_url) as api:
                return await _discover(api, args.cloudflare)
        try:
            endpoints = asyncio.run(_list())
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            console.print(f"[red]Error: {user_message(exc)}[/red]")
            sys.exit(1)
        console.print("\n[bold]Available Endpoints:[/bold]\n")
        for e in endpoints:
            console.print(f"  {e.id:<16} | {e.name:<20} | {e.location:<24} | {e.family}")
        return

    try:
        asyncio.run(
            run_speedtest(
                base_url=args.base_url,
                json_output=args.json,
                output_file=args.output,
                csv_file=args.csv,
                simple=args.simple,
                endpoint_id=args.server,
                cloudflare=args.cloudflare,
                ping_count=args.ping_count,
                download_duration=args.download_duration,
                upload_duration=args.upload_duration,
                pretest_duration=config["pretest_duration"],
                connections=args.connections,
                submit=args.submit,
            )
        )
    except (TestCancelled, KeyboardInterrupt):
        console.print("\n[yellow]Test cancelled[/yellow]")
        sys.exit(1)
    except ConfigurationError as exc:
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)
    except (SpeedtestError, aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
        logger.debug("Test failed", exc_info=True)
        console.print(f"\n[red]Error: {user_message(exc)}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
