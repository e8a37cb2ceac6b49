from __future__ import annotations

import argparse
import logging
import os
import time

from .config import load_config
from .runner import Runner, build_runner


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="odmon", description="OData Resource Monitor (incremental poller)")
    p.add_argument("--config", required=True, help="Path to JSON config file")
    p.add_argument(
        "--log-level",
        default=None,
        help="Log level (DEBUG/INFO/WARNING/ERROR). Defaults to env ODMON_LOG_LEVEL or INFO",
    )
    p.add_argument(
        "--status-interval",
        type=int,
        default=None,
        help="Daemon heartbeat interval seconds. Defaults to env ODMON_STATUS_INTERVAL_SECONDS or 60. Set 0 to disable.",
    )

    mode = p.add_mutually_exclusive_group(required=False)
    mode.add_argument("--once", action="store_true", help="Run one poll cycle and exit")
    mode.add_argument("--daemon", action="store_true", help="Run forever with poll interval")
    return p


def _resolve_log_level(value: str | None) -> int:
    v = (value or "").strip().upper()
    if not v:
        return logging.INFO
    level = logging.getLevelNamesMapping().get(v)
    if isinstance(level, int):
        return level
    return logging.INFO


def _stanzas_summary(runner: Runner) -> str:
    parts = [f"{i.spec.stanza}(tail_filter={','.join(i.spec.tail_filter_path) or '-'})" for i in runner.inputs]
    return "; ".join(parts) if parts else "<none>"


def _sinks_summary(runner: Runner) -> str:
    parts = [f"{type(s).__name__}({s.channel()})" for s in runner.sinks]
    return "; ".join(parts) if parts else "<none>"


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    env_log_level = os.environ.get("ODMON_LOG_LEVEL")
    log_level = _resolve_log_level(args.log_level or env_log_level)
    # 默认输出到 stderr，stdout 留给 XML 事件流
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger = logging.getLogger("odmon")

    config = load_config(args.config)
    runner = build_runner(config)

    status_interval = args.status_interval
    if status_interval is None:
        try:
            status_interval = int(os.environ.get("ODMON_STATUS_INTERVAL_SECONDS") or 60)
        except Exception:
            status_interval = 60
    status_interval = max(0, int(status_interval))

    mode = "daemon" if args.daemon and not args.once else "once"
    logger.info("odmon start: mode=%s config=%s", mode, args.config)
    logger.info(
        "config: poll_interval_seconds=%d checkpoint_dir=%s",
        config.poll_interval_seconds,
        config.checkpoint_dir,
    )
    logger.info("stanzas: %s", _stanzas_summary(runner))
    logger.info("sinks: %s", _sinks_summary(runner))
    if not runner.inputs:
        logger.warning("no stanzas configured; nothing will be polled")
    if not runner.sinks:
        logger.warning("no sinks available; records will be fetched but not delivered")

    try:
        if mode == "once":
            report = runner.run_once()
            logger.info(
                "once done: duration_ms=%d stanzas=%d records=%d emitted=%d emit_failures=%d cycle_errors=%d",
                report.duration_ms,
                len(report.cycles),
                report.records_fetched,
                report.events_emitted,
                report.emit_failures,
                report.cycle_errors,
            )
            return 1 if report.cycle_errors else 0

        _run_daemon(runner, poll_interval=config.poll_interval_seconds, status_interval=status_interval, logger=logger)
        return 0
    finally:
        runner.close()


def _run_daemon(runner: Runner, *, poll_interval: int, status_interval: int, logger: logging.Logger) -> None:
    logger.info(
        "daemon: poll_interval_seconds=%d status_interval_seconds=%d",
        max(1, poll_interval),
        status_interval,
    )
    cycle_id = 0
    next_heartbeat_at = time.monotonic() + status_interval if status_interval > 0 else float("inf")

    while True:
        cycle_id += 1
        try:
            report = runner.run_once()
        except Exception:  # noqa: BLE001
            logger.exception("cycle crashed: id=%d", cycle_id)
            time.sleep(5)
            continue

        if report.cycle_errors or report.emit_failures:
            logger.warning(
                "cycle summary: id=%d duration_ms=%d records=%d emitted=%d emit_failures=%d cycle_errors=%d",
                cycle_id,
                report.duration_ms,
                report.records_fetched,
                report.events_emitted,
                report.emit_failures,
                report.cycle_errors,
            )

        sleep_end = time.monotonic() + max(1, poll_interval)
        while True:
            now = time.monotonic()
            if now >= sleep_end:
                break

            if now >= next_heartbeat_at:
                logger.info(
                    "daemon alive: cycles=%d next_poll_in=%ds last_duration_ms=%d last_records=%d last_cycle_errors=%d",
                    cycle_id,
                    max(0, int(sleep_end - now)),
                    report.duration_ms,
                    report.records_fetched,
                    report.cycle_errors,
                )
                next_heartbeat_at = now + status_interval

            remaining_s = sleep_end - now
            if status_interval > 0:
                time.sleep(min(remaining_s, max(0.2, next_heartbeat_at - now)))
            else:
                time.sleep(min(remaining_s, 1.0))


if __name__ == "__main__":
    raise SystemExit(main())
