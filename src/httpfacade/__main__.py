"""Run a single HTTP request through HttpClient. Use --help for usage."""

import argparse
import io
import logging
import sys
import threading
from pathlib import Path
from typing import Any, BinaryIO

from dotenv import load_dotenv

from httpfacade.client import HttpClient, ResultStore
from httpfacade.config import load_config
from httpfacade.errors import MalformedURLError
from httpfacade.logging import setup_logging

logger = logging.getLogger(__name__)

REQUEST_ID = 1

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INTERRUPTED = 130


class CliCallback:
    """Prints progress to stderr and records the outcome."""

    def __init__(self, stream=None):
        self.stream = stream or sys.stderr
        self.done = threading.Event()
        self.result: ResultStore | None = None
        self.canceled = False

    def on_connection_progress(
        self,
        request_id: int,
        bytes_sent: int,
        bytes_read: int,
        bytes_total_to_read: int,
        client_param: Any,
    ) -> None:
        total = str(bytes_total_to_read) if bytes_total_to_read else "?"
        print(f"\rsent {bytes_sent} B, received {bytes_read}/{total} B", end="", file=self.stream)

    def on_content_received(self, request_id: int, result: ResultStore, client_param: Any) -> None:
        self.result = result
        self.done.set()

    def on_connection_canceled(self, request_id: int, result: ResultStore, client_param: Any) -> None:
        self.result = result
        self.canceled = True
        self.done.set()


def parse_header(value: str) -> tuple[str, str]:
    name, sep, header_value = value.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Header must look like 'Name: value', got '{value}'")
    return name.strip(), header_value.strip()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m httpfacade",
        description="Run one HTTP request and print the response",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Download to stdout
    python -m httpfacade https://example.com/

    # Upload a file and save the response
    python -m httpfacade https://example.com/upload -X POST --data-file report.pdf -o out.json

    # Trust a self-signed server certificate
    python -m httpfacade https://localhost:8443/ --cert server.pem
        """,
    )

    parser.add_argument("url", help="Absolute http or https URL")
    parser.add_argument("-X", "--method", default="GET", help="HTTP method (default: GET)")
    parser.add_argument(
        "-H",
        "--header",
        action="append",
        type=parse_header,
        default=[],
        help="Request header 'Name: value' (repeatable)",
    )
    parser.add_argument("--data-file", type=Path, help="File sent as the request body")
    parser.add_argument("-o", "--output", type=Path, help="Write the response body here instead of stdout")
    parser.add_argument("--cert", type=Path, help="PEM or DER certificate to trust for HTTPS")
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument("--buffer-size", type=int, help="Chunk size in bytes")
    parser.add_argument("--connect-timeout-ms", type=int, help="Connect timeout in milliseconds")
    parser.add_argument("--read-timeout-ms", type=int, help="Read timeout in milliseconds")
    parser.add_argument("--json-logs", action="store_true", help="Log as JSON lines")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    return parser.parse_args(argv)


def _build_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if args.buffer_size is not None:
        overrides["buffer_size"] = args.buffer_size
    if args.connect_timeout_ms is not None:
        overrides["connection_timeout_ms"] = args.connect_timeout_ms
    if args.read_timeout_ms is not None:
        overrides["read_timeout_ms"] = args.read_timeout_ms
    if args.cert is not None:
        overrides["trust_certificate_path"] = str(args.cert)
    if args.json_logs:
        overrides["json_logs"] = True
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    return overrides


def _print_response(result: ResultStore, stream=None) -> None:
    stream = stream or sys.stderr
    print(f"\nstatus: {result.status_code}", file=stream)
    for name, values in (result.headers or {}).items():
        for value in values:
            print(f"{name}: {value}", file=stream)


def run(args: argparse.Namespace) -> int:
    config = load_config(args.config, overrides=_build_overrides(args))
    setup_logging(
        json_format=config.json_logs,
        console_level=config.log_level,
        log_file=Path(config.log_file) if config.log_file else None,
    )

    callback = CliCallback()
    upload: BinaryIO | None = None
    sink: BinaryIO = io.BytesIO()

    try:
        if args.data_file is not None:
            upload = open(args.data_file, "rb")
        if args.output is not None:
            sink = open(args.output, "wb")

        with HttpClient.from_config(config) as client:
            try:
                client.do_request(
                    REQUEST_ID,
                    callback,
                    args.url,
                    args.method,
                    headers=dict(args.header),
                    upload_body=upload,
                    download_body=sink,
                )
            except MalformedURLError as e:
                logger.error(str(e))
                return EXIT_FAILED

            try:
                while not callback.done.wait(timeout=0.2):
                    pass
            except KeyboardInterrupt:
                logger.info("Interrupted, canceling request")
                client.cancel_request(REQUEST_ID)
                callback.done.wait(timeout=5.0)
                return EXIT_INTERRUPTED

        result = callback.result
        _print_response(result)
        if callback.canceled:
            return EXIT_INTERRUPTED

        if args.output is None:
            sys.stdout.buffer.write(sink.getvalue())
            sys.stdout.flush()

        # 0 means no status line was read
        return EXIT_OK if 0 < result.status_code < 400 else EXIT_FAILED
    finally:
        if upload is not None:
            upload.close()
        sink.close()


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    try:
        return run(args)
    except (ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
