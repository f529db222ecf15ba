"""CLI entrypoint for the contact form autofill engine."""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from contact_autofill.config import DATASET_ROOT, DEFAULT_BROWSER, DEFAULT_TIMEOUT_MS, get_openai_api_key
from contact_autofill.profile import load_profile
from contact_autofill.runner import run_fill_task


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fill contact forms with sender data (never submits).")
    parser.add_argument("--url", action="append", default=[], help="Contact page URL; repeat for several pages.")
    parser.add_argument("--urls-file", help="Text file with one contact page URL per line.")
    parser.add_argument("--profile", required=True, help="Sender profile (.json object or key,value .csv).")
    parser.add_argument("--message-file", help="Text file whose contents go into the message field.")
    parser.add_argument("--schema", help="Form schema JSON to use instead of calling the classifier.")
    parser.add_argument("--outdir", default=str(DATASET_ROOT), help="Directory to store captures and telemetry.")
    parser.add_argument("--headless", action="store_true", help="Run the browser in headless mode.")
    parser.add_argument(
        "--browser",
        default=DEFAULT_BROWSER,
        help="Browser engine to use (chromium, firefox, or webkit).",
    )
    parser.add_argument("--timeout-ms", type=int, default=DEFAULT_TIMEOUT_MS, help="Timeout for element operations.")
    parser.add_argument("--max-retries", type=int, default=3, help="Navigation attempts per contact page.")
    parser.add_argument("--log-level", default="INFO", help="Python logging level.")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    log_file = _configure_logging(args.log_level)
    logging.info("Log file: %s", log_file)
    urls = _validate_args(args)
    _warn_schema_source(args)

    message = Path(args.message_file).expanduser().read_text(encoding="utf-8") if args.message_file else None
    profile = load_profile(Path(args.profile).expanduser())

    attempts = asyncio.run(
        run_fill_task(
            urls,
            profile,
            message,
            schema_path=Path(args.schema).expanduser() if args.schema else None,
            out_dir=Path(args.outdir),
            headless=args.headless,
            browser=args.browser,
            timeout_ms=args.timeout_ms,
            max_retries=args.max_retries,
        )
    )
    for attempt in attempts:
        print(f"{attempt.status}\t{attempt.url}\t{attempt.error or ''}".rstrip())


def _validate_args(args: argparse.Namespace) -> List[str]:
    for label, value in (("Profile", args.profile), ("Message file", args.message_file), ("Schema", args.schema)):
        if not value:
            continue
        path = Path(value).expanduser()
        if not path.is_file():
            raise SystemExit(f"{label} file not found: {path}")

    urls = [url.strip() for url in args.url if url.strip()]
    if args.urls_file:
        urls_path = Path(args.urls_file).expanduser()
        if not urls_path.is_file():
            raise SystemExit(f"URLs file not found: {urls_path}")
        for line in urls_path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                urls.append(line)
    if not urls:
        raise SystemExit("Provide at least one --url or a --urls-file")
    return urls


def _warn_schema_source(args: argparse.Namespace) -> None:
    if not args.schema and not get_openai_api_key():
        logging.warning(
            "No --schema given and OPENAI_API_KEY is not set. "
            "Forms cannot be classified, so every attempt will end as form_schema_error."
        )


def _configure_logging(log_level: str) -> Path:
    level = getattr(logging, log_level.upper(), logging.INFO)
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)
    log_file = log_dir / f"contact-autofill-{datetime.now(timezone.utc).strftime('%Y%m%d-%H%M%S')}.log"
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=[stream_handler, file_handler])
    return log_file


if __name__ == "__main__":
    main()
