"""
Profile Extraction Engine - CLI Runner

Usage:
  python -m pxe.run --html saved_profile.html --url https://www.linkedin.com/in/jane-doe/ --out ./out

  python -m pxe.run --url https://www.linkedin.com/in/jane-doe/ \
    --config config/example.yaml \
    --cookie JSESSIONID=ajax:123 --cookie li_at=... \
    --live --watch 30 --out ./out

Exit codes:
  0 - success (record written; may be incomplete)
  1 - config error (file missing or invalid YAML / schema)
  2 - input error (missing HTML file, bad cookie, no URL)
  3 - processing error (fetch failed, output not writable)
"""
from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional

from src.config import (
    ConfigError,
    EngineConfig,
    MemoryTier,
    TwoTierStore,
    YamlFileTier,
    load_config,
    read_user_context,
)
from src.ops_logger import OpsLogger, ops_enabled
from src.pipeline.document import StaticDocument
from src.pipeline.scheduler import ReparseScheduler, SubjectTracker, is_profile_url
from src.pipeline.secondary import SecondarySource
from src.pipeline.session import ExtractionSession, SessionResult


def parse_cookies(values: List[str]) -> Dict[str, str]:
    cookies: Dict[str, str] = {}
    for raw in values or []:
        if "=" not in raw:
            raise ValueError(f"cookie must be NAME=VALUE: {raw!r}")
        name, value = raw.split("=", 1)
        name = name.strip()
        if not name:
            raise ValueError(f"cookie must be NAME=VALUE: {raw!r}")
        cookies[name] = value.strip()
    return cookies


def ensure_out_dir(out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    test_file = out_dir / ".write_test"
    test_file.write_text("ok", encoding="utf-8")
    test_file.unlink(missing_ok=True)


def make_secondary(cfg: EngineConfig, cookies: Dict[str, str], disabled: bool) -> Optional[SecondarySource]:
    if disabled or not cfg.secondary.enabled:
        return None
    return SecondarySource(
        cookies=cookies,
        source_root=cfg.secondary.source_root,
        timeout_s=cfg.secondary.timeout_s,
        protocol_version=cfg.secondary.protocol_version,
    )


def write_record(out_dir: Path, result: SessionResult, meta: Dict[str, object]) -> Path:
    path = out_dir / "profile.json"
    payload = {
        "profileData": result.draft.to_profile_data(),
        "isValid": result.is_valid,
        "stage": result.stage.value,
        "secondary": {
            "consulted": result.secondary_consulted,
            "available": result.secondary_available,
            "backfilled": result.backfilled,
        },
        "exhausted": result.exhausted,
        **meta,
    }
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    return path


def run_watch(url: str, cfg: EngineConfig, cookies: Dict[str, str], args: argparse.Namespace, ops_logger: Optional[OpsLogger]) -> Optional[SessionResult]:
    """Live mode: keep the page open and let the reparse scheduler work."""
    from src.pipeline.fetchers.playwright import PlaywrightFetcher

    fetcher = PlaywrightFetcher(cookies=cookies)
    pattern = cfg.scheduler.profile_pattern()
    deadline = time.monotonic() + float(args.watch)
    with fetcher.open_live(url) as live:
        def factory(subject_url: str) -> ReparseScheduler:
            return ReparseScheduler(
                subject_url,
                document_provider=lambda: live.document,
                mutations=live.mutations,
                secondary=make_secondary(cfg, cookies, args.no_secondary),
                attempt_limit=cfg.scheduler.attempt_limit,
                debounce_s=cfg.scheduler.debounce_s,
                initial_delay_s=cfg.scheduler.initial_delay_s,
                reparse_delay_s=cfg.scheduler.reparse_delay_s,
                profile_pattern=pattern,
                sleep=live.pump,
                ops_logger=ops_logger,
            )

        tracker = SubjectTracker(
            factory,
            profile_pattern=pattern,
            navigation_delay_s=cfg.scheduler.navigation_delay_s,
            sleep=live.pump,
        )
        scheduler = tracker.on_location_change(live.page.url, initial=True)
        last: Optional[SessionResult] = scheduler.last_result if scheduler else None
        while time.monotonic() < deadline:
            live.pump(0.25)
            scheduler = tracker.on_location_change(live.page.url)
            if scheduler is None:
                break
            if scheduler.last_result is not None:
                last = scheduler.last_result
            if scheduler.seal_reason in ("valid", "attempt_limit"):
                break
        tracker.stop()
        return last


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="pxe.run", description="Profile extraction engine runner")
    parser.add_argument("--url", "-u", default=None, help="Profile URL (subject identity; fetched unless --html is given)")
    parser.add_argument("--html", default=None, help="Path to a saved profile HTML file")
    parser.add_argument("--config", "-c", default=None, help="Path to YAML config file")
    parser.add_argument("--out", "-o", required=True, help="Output directory")
    parser.add_argument("--cookie", action="append", default=[], help="Session cookie NAME=VALUE (repeatable)")
    parser.add_argument("--store", default=None, help="YAML key/value store with userName/objective")
    parser.add_argument("--live", action="store_true", help="Render the page with Playwright")
    parser.add_argument("--watch", type=float, default=0.0, help="Live mode: keep reparsing for up to N seconds")
    parser.add_argument("--no-secondary", action="store_true", help="Never consult the structured secondary source")
    parser.add_argument("--no-robots", action="store_true", help="Static fetch: do not check robots.txt")
    parser.add_argument("--ops-log", default=None, help="Path to ops JSONL log file (default: <out>/ops.log)")
    parser.add_argument("--ops-stdout", action="store_true", help="Also mirror ops JSON to stdout")
    args = parser.parse_args(argv)

    try:
        cfg = load_config(Path(args.config) if args.config else None)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1

    try:
        cookies = parse_cookies(args.cookie)
    except ValueError as e:
        print(f"Input error: {e}", file=sys.stderr)
        return 2

    if not args.html and not args.url:
        print("Input error: either --html or --url is required", file=sys.stderr)
        return 2
    if args.html and not Path(args.html).is_file():
        print(f"Input error: file not found: {args.html}", file=sys.stderr)
        return 2

    out_dir = Path(args.out)
    try:
        ensure_out_dir(out_dir)
    except OSError as e:
        print(f"Output error: cannot write to {out_dir}: {e}", file=sys.stderr)
        return 3

    ops_logger = None
    if ops_enabled(cfg.ops.logging.ops_json) or args.ops_log or args.ops_stdout:
        ops_path = Path(args.ops_log) if args.ops_log else (out_dir / "ops.log")
        ops_logger = OpsLogger(ops_path, also_stdout=args.ops_stdout)

    meta: Dict[str, object] = {}
    if args.store:
        store = TwoTierStore(YamlFileTier(Path(args.store)), MemoryTier())
        user = read_user_context(store)
        if user.user_name:
            meta["requestedBy"] = user.user_name
        if user.objective:
            meta["objective"] = user.objective

    url = args.url or ""
    if url and not is_profile_url(url, cfg.scheduler.profile_pattern()):
        print(f"⚠️  Not a profile URL, extracting anyway: {url}")

    proc_start = time.perf_counter()
    result: Optional[SessionResult] = None
    if args.live and args.watch > 0:
        if not url:
            print("Input error: --watch needs --url", file=sys.stderr)
            return 2
        try:
            result = run_watch(url, cfg, cookies, args, ops_logger)
        except Exception as e:
            print(f"Live session error: {e}", file=sys.stderr)
            return 3
    else:
        if args.html:
            html = Path(args.html).read_text(encoding="utf-8", errors="replace")
        elif args.live:
            from src.pipeline.fetchers.playwright import PlaywrightFetcher
            fetched = PlaywrightFetcher(cookies=cookies).fetch(url)
            if fetched.error or not fetched.html:
                print(f"Fetch error: {fetched.error or 'empty page'}", file=sys.stderr)
                return 3
            html = fetched.html
        else:
            from src.pipeline.fetchers.static import StaticFetcher
            fetcher = StaticFetcher(cookies=cookies, respect_robots=not args.no_robots)
            try:
                fetched = fetcher.fetch(url)
            finally:
                fetcher.close()
            if not fetched.ok:
                reason = "blocked by robots.txt" if fetched.blocked_by_robots else (fetched.error or "empty page")
                print(f"Fetch error: {reason}", file=sys.stderr)
                return 3
            html = fetched.html or ""

        secondary = make_secondary(cfg, cookies, args.no_secondary)
        try:
            result = ExtractionSession(StaticDocument(html, url=url), secondary=secondary).run()
        finally:
            if secondary is not None:
                secondary.close()
        if ops_logger:
            ops_logger.emit({
                "pxe_ops": 1,
                "event": "session",
                "subject": url,
                "stage": result.stage.value,
                "is_valid": result.is_valid,
                "backfilled": result.backfilled,
                "exhausted": result.exhausted,
                "durations": result.durations,
            })

    if result is None:
        print("No extraction session completed.", file=sys.stderr)
        return 3

    try:
        path = write_record(out_dir, result, meta)
    except OSError as e:
        print(f"Export error: {e}", file=sys.stderr)
        return 3

    draft = result.draft
    print(f"💾 JSON: {path}")
    print(f"   Name: {draft.name or '-'} | valid={result.is_valid} | experience={len(draft.experience)} education={len(draft.education)} skills={len(draft.skills)}")
    if result.exhausted:
        print(f"   Empty fields: {', '.join(result.exhausted)}")
    print(f"   Wall: {time.perf_counter() - proc_start:.2f}s")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
