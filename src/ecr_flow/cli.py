"""Command-line entry point.

Usage:
    ecr-flow run [--env-file .env] [--flow launch|notify] [-v]
    ecr-flow keygen [--out private.pem] [--kid KID]

Exit status is 0 when the run completes and 1 on any uncaught error.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

from dotenv import load_dotenv

from .config import Settings
from .flows import run_flow
from .keygen import generate_key_pair


logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from HTTP libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ecr-flow",
        description="Forward FHIR Encounters to an eCRNow case-reporting service",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="run one launch or notify batch (default)")
    run.add_argument("--env-file", default=".env", help="dotenv file to load (default: .env)")
    run.add_argument("--flow", choices=["launch", "notify"], help="override FLOW_MODE")

    keygen = sub.add_parser("keygen", help="generate an RSA key and print its JWKS")
    keygen.add_argument("--out", default="private.pem", help="private key path (default: private.pem)")
    keygen.add_argument("--kid", help="key id (default: $KID or a new UUID)")
    return parser


def run(env_file: str = ".env", flow: str | None = None) -> int:
    """Load settings from the environment and run one flow. Returns the exit status."""
    load_dotenv(env_file, override=False)
    environ = dict(os.environ)
    if flow:
        environ["FLOW_MODE"] = flow

    try:
        settings = Settings.from_env(environ)
        result = run_flow(settings)
    except Exception as exc:
        response = getattr(exc, "response", None)
        if response is not None:
            logger.error("Fatal: HTTP %s: %s", response.status_code, response.text[:2000])
        else:
            logger.exception("Fatal: %s", exc)
        return 1

    logger.info("Done. %s", result.summary())
    return 0


def keygen(out: str, kid: str | None) -> int:
    jwks = generate_key_pair(out, kid=kid)
    print(f"Created {out} (KEEP SECRET)")
    print("Register this JWKS with the authorization server:")
    print(json.dumps(jwks, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "keygen":
        return keygen(args.out, args.kid)
    return run(
        env_file=getattr(args, "env_file", ".env"),
        flow=getattr(args, "flow", None),
    )


if __name__ == "__main__":
    sys.exit(main())
