from __future__ import annotations

import argparse
import logging
import sys

import uvicorn

from .settings import SETTINGS


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="ansiweb", description="Web front end for ansible-playbook runs.")
    ap.add_argument("--port", type=int, help="HTTP service port (e.g. 8080)")
    ap.add_argument("--host", default="0.0.0.0", help="address to bind")
    ap.add_argument("--base-dir", default=None, help="directory holding jobs/, roles/, playbooks/ and machines")
    return ap


def main(argv: list[str] | None = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    if not args.port:
        ap.print_usage(sys.stderr)
        return 2

    if args.base_dir:
        SETTINGS.base_dir = args.base_dir

    logging.basicConfig(
        level=SETTINGS.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from .main import create_app  # noqa: WPS433

    uvicorn.run(create_app(SETTINGS), host=args.host, port=args.port, log_level=SETTINGS.log_level.lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
