from __future__ import annotations

import argparse
import json
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path


TERMINAL_JOB_STATUSES = ("succeeded", "failed")


def parse_iso(ts: str) -> datetime | None:
    try:
        return datetime.fromisoformat(ts.replace("Z", "+00:00"))
    except ValueError:
        return None


def _load_exitstatus(path: Path) -> dict | None:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None


def _should_cleanup_job(record: dict, *, now: datetime, ttl: timedelta) -> bool:
    if record.get("status") not in TERMINAL_JOB_STATUSES:
        return False
    finished_at = parse_iso(str(record.get("finished_at") or ""))
    if not finished_at:
        return False
    return now - finished_at >= ttl


def _cleanup_job_dir(job_dir: Path, *, dry_run: bool) -> None:
    if dry_run:
        print(f"[dry-run] would remove job dir {job_dir}")
        return
    shutil.rmtree(job_dir)
    print(f"[cleanup] removed job dir {job_dir}")


def cleanup(*, jobs_root: Path, ttl: timedelta, now: datetime, dry_run: bool) -> list[str]:
    removed: list[str] = []
    for job_dir in sorted(jobs_root.iterdir()) if jobs_root.exists() else []:
        if not job_dir.is_dir() or job_dir.is_symlink():
            continue
        status_path = job_dir / "exitstatus"
        if not status_path.exists():
            continue
        record = _load_exitstatus(status_path)
        if not record:
            continue
        if not _should_cleanup_job(record, now=now, ttl=ttl):
            continue
        _cleanup_job_dir(job_dir, dry_run=dry_run)
        removed.append(job_dir.name)
    return removed


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--jobs-root", default="jobs")
    ap.add_argument("--ttl-days", type=int, default=7)
    ap.add_argument("--dry-run", action="store_true")
    args = ap.parse_args()

    cleanup(
        jobs_root=Path(args.jobs_root),
        ttl=timedelta(days=args.ttl_days),
        now=datetime.now(tz=timezone.utc),
        dry_run=args.dry_run,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
