import argparse
import os
import sys

from parallel_upload.constants import (
    DEFAULT_PARALLEL_CHUNKS,
    DEFAULT_PARALLEL_FILES,
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT,
    ENV_UPLOAD_TOKEN,
    ENV_UPLOAD_URL,
    MODE_BINARY,
    MODE_MULTIPART,
    VERSION,
)
from parallel_upload.errors import ConfigError, InvalidHeaderError
from parallel_upload.structs import RunOptions, UploadMode
from parallel_upload.upload import TransferHeaders, apply_header
from parallel_upload.utils import parse_size


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="parallel-upload",
        description=(
            "Upload files to a server in parallel, as multipart or binary "
            "requests or as JSON chunks, with optional progress bars."
        ),
    )

    parser.add_argument("paths", nargs="*", help="Files or directories to upload")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")

    parser.add_argument(
        "-H",
        "--host",
        default="",
        help=f"URL to upload to (default: ${ENV_UPLOAD_URL})",
    )
    parser.add_argument(
        "-t",
        "--token",
        default="",
        help=f"Bearer token sent as Authorization header (default: ${ENV_UPLOAD_TOKEN})",
    )
    parser.add_argument(
        "-c",
        "--category",
        default=MODE_MULTIPART,
        choices=[MODE_MULTIPART, MODE_BINARY],
        help="Kind of upload (default: multipart)",
    )
    parser.add_argument(
        "-p",
        "--progress",
        action="store_true",
        help="Upload files one at a time with a progress bar",
    )
    parser.add_argument(
        "-s",
        "--chunk-size",
        type=str,
        help="Upload each file as JSON chunks of this size (e.g., '5MB'). Accepts suffixes KB, MB, GB.",
    )
    parser.add_argument(
        "--parallel-chunks",
        type=int,
        default=DEFAULT_PARALLEL_CHUNKS,
        help=f"Maximum chunk uploads in flight per file. Default: {DEFAULT_PARALLEL_CHUNKS}",
    )
    parser.add_argument(
        "--parallel-files",
        type=int,
        default=DEFAULT_PARALLEL_FILES,
        help="Maximum files uploaded at the same time, 0 for no limit. Default: 0",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=DEFAULT_RETRIES,
        help=f"Retries per failed chunk. Default: {DEFAULT_RETRIES}",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"Request timeout in seconds, 0 to wait forever. Default: {DEFAULT_TIMEOUT}",
    )
    parser.add_argument(
        "-X",
        "--header",
        action="append",
        default=[],
        dest="headers",
        metavar="'NAME: VALUE'",
        help="Extra request header, may be repeated",
    )

    parser.add_argument("--debug", action="store_true", help="Enable debug output")

    return parser


def parse_arguments(argv=None):
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def parse_header(header: str) -> tuple[str, str]:
    """
    Split a 'Name: Value' string.

    Raises:
        InvalidHeaderError: If there is no colon separator
    """
    name, sep, value = header.partition(":")
    if not sep:
        raise InvalidHeaderError(f"Invalid header {header!r}. Expected format: 'Name: Value'")
    return name.strip(), value.strip()


def resolve_host(host: str, environ=None) -> str:
    environ = os.environ if environ is None else environ
    host = host or environ.get(ENV_UPLOAD_URL, "")
    if not host:
        raise ConfigError(
            "No host provided. Please provide a host using the --host flag "
            f"or {ENV_UPLOAD_URL} environment variable"
        )
    return host


def resolve_token(token: str, environ=None) -> str:
    environ = os.environ if environ is None else environ
    return token or environ.get(ENV_UPLOAD_TOKEN, "")


def read_input_paths(paths: list[str], stdin=None) -> list[str]:
    """
    Use the given paths, or read them one per line from a piped stdin.

    Raises:
        ConfigError: If no paths were given and stdin is a terminal
    """
    if paths:
        return paths

    stdin = sys.stdin if stdin is None else stdin
    if stdin.isatty():
        raise ConfigError("No files or directories provided")

    return [line.strip() for line in stdin if line.strip()]


def build_options(args) -> RunOptions:
    """
    Turn parsed arguments into RunOptions.

    Raises:
        ConfigError: If a size or limit is out of range
    """
    chunk_size = None
    if args.chunk_size is not None:
        try:
            chunk_size = parse_size(args.chunk_size)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        if chunk_size <= 0:
            raise ConfigError("Chunk size must be greater than zero")

    if args.parallel_chunks < 1:
        raise ConfigError("--parallel-chunks must be at least 1")
    if args.parallel_files < 0:
        raise ConfigError("--parallel-files must not be negative")
    if args.retries < 0:
        raise ConfigError("--retries must not be negative")
    if args.timeout < 0:
        raise ConfigError("--timeout must not be negative")

    return RunOptions(
        progress=args.progress,
        chunk_size=chunk_size,
        parallel_chunks=args.parallel_chunks,
        parallel_files=args.parallel_files,
        retries=args.retries,
        timeout=args.timeout,
    )


def build_headers(token: str, raw_headers: list[str]) -> TransferHeaders:
    """Headers sent with every request. Invalid entries are reported and skipped."""
    headers = TransferHeaders()
    if token:
        apply_header(headers, "Authorization", f"Bearer {token}")
    for raw in raw_headers:
        try:
            name, value = parse_header(raw)
        except InvalidHeaderError as e:
            print(f"Error: {e}", file=sys.stderr)
            continue
        apply_header(headers, name, value)
    return headers


def upload_mode(category: str) -> UploadMode:
    try:
        return UploadMode(category)
    except ValueError as e:
        raise ConfigError(f"Invalid kind of upload: {category}") from e
