from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Sequence

from .config import config_sha256, load_config, resolve_runtime_secrets
from .config_schema import AppConfig
from .dry_run import run_dry_run
from .errors import ConfigError, FetchError, StorageError
from .fetch_retry import RetryEvent
from .fetcher import ApifyTimelineFetcher, TimelineFetcher
from .offline import OfflineTimelineFetcher
from .pipeline import build_persister, run_pipeline
from .run_log import RunLogger
from .storage import SQLiteTimelineStore


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="timeline_ingest")

    subparsers = parser.add_subparsers(dest="command", required=True)

    dry = subparsers.add_parser(
        "dry-run",
        help="Fetch and normalize a small batch without persisting it.",
    )
    dry.add_argument("--config", required=True, help="Path to YAML config file.")
    dry.add_argument(
        "--offline",
        action="store_true",
        help="Use built-in sample timeline items instead of calling the Actor.",
    )
    dry.set_defaults(_handler=_cmd_dry_run)

    run = subparsers.add_parser(
        "run",
        help="Fetch, normalize and persist one timeline batch.",
    )
    run.add_argument("--config", required=True, help="Path to YAML config file.")
    run.add_argument(
        "--out",
        required=True,
        help="Output directory; relative sink paths and run.log live here.",
    )
    run.add_argument(
        "--sink",
        choices=("relational", "snapshot"),
        default=None,
        help="Override sink.mode from the config.",
    )
    run.add_argument(
        "--offline",
        action="store_true",
        help="Use built-in sample timeline items instead of calling the Actor.",
    )
    run.set_defaults(_handler=_cmd_run)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _build_fetcher(
    cfg: AppConfig,
    *,
    offline: bool,
    log: RunLogger | None = None,
) -> TimelineFetcher:
    if offline:
        return OfflineTimelineFetcher()

    secrets = resolve_runtime_secrets(cfg)

    def _on_retry(event: RetryEvent) -> None:
        if log is not None:
            log.warning(
                "fetch_retry",
                operation=event.operation,
                attempt=event.failure_attempt,
                max_attempts=event.max_attempts,
                delay_seconds=event.delay_seconds,
                reason=event.reason,
                error_type=event.error_type,
                error_message=event.error_message,
            )

    return ApifyTimelineFetcher(
        secrets.apify_token,
        actor_id=cfg.fetch.actor_id,
        extra_input=cfg.fetch.extra_input,
        on_retry=_on_retry,
    )


def _cmd_dry_run(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    fetcher = _build_fetcher(cfg, offline=bool(getattr(args, "offline", False)))

    result = run_dry_run(cfg, fetcher=fetcher)

    print(f"fetched_count={result.fetched_count}")
    print(f"normalized_count={result.normalized_count}")
    print(f"duplicate_count={result.duplicate_count}")
    print(f"rejected={json.dumps(result.rejected, sort_keys=True)}")
    print("example_post=")
    print(json.dumps(result.example_post, indent=2, ensure_ascii=False))

    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    log_path = out_dir / "run.log"
    with RunLogger.open(log_path, overwrite=True) as log:
        log.info("run_command_started", config_path=str(args.config), out_dir=str(out_dir))

        try:
            cfg = load_config(args.config)
            if args.sink:
                cfg = cfg.model_copy(update={"sink": cfg.sink.model_copy(update={"mode": args.sink})})

            log.info(
                "config_loaded",
                config_hash=config_sha256(cfg),
                sink_mode=cfg.sink.mode,
                actor_id=cfg.fetch.actor_id,
                count=cfg.fetch.count,
            )

            fetcher = _build_fetcher(cfg, offline=bool(args.offline), log=log)

            if cfg.sink.mode == "relational":
                with SQLiteTimelineStore.open(out_dir / cfg.sink.database_path) as store:
                    persister = build_persister(cfg, base_dir=out_dir, store=store, logger=log)
                    result = run_pipeline(cfg, fetcher=fetcher, persister=persister, logger=log)
            else:
                persister = build_persister(cfg, base_dir=out_dir, logger=log)
                result = run_pipeline(cfg, fetcher=fetcher, persister=persister, logger=log)

            log.info(
                "run_command_completed",
                fetched=result.fetched,
                normalized=result.normalized,
                persisted=result.persist.persisted,
                skipped=result.persist.skipped,
                target=result.persist.target,
            )

            print(f"mode={result.persist.mode}")
            print(f"fetched={result.fetched}")
            print(f"normalized={result.normalized}")
            print(f"rejected={sum(result.rejected.values())}")
            print(f"persisted={result.persist.persisted}")
            print(f"skipped={result.persist.skipped}")
            print(f"target={result.persist.target}")
            print(f"run_log={log_path}")

            return 0
        except Exception as e:
            log.exception("run_command_failed", exc=e)
            raise


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except (FetchError, StorageError) as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
