import logging
import sys

from parallel_upload.errors import ConfigError
from parallel_upload.main import display_final_stats, run_uploads
from parallel_upload.parsing import (
    build_headers,
    build_options,
    parse_arguments,
    read_input_paths,
    resolve_host,
    resolve_token,
    upload_mode,
)
from parallel_upload.utils import resolve_paths


def configure_logging(debug: bool):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)


async def cli(argv=None, environ=None, stdin=None, transport=None):
    """Main entry point for the uploader."""
    # Parse command line arguments
    args = parse_arguments(argv)
    configure_logging(args.debug)

    # Resolve configuration; failures here are fatal
    try:
        host = resolve_host(args.host, environ)
        token = resolve_token(args.token, environ)
        mode = upload_mode(args.category)
        options = build_options(args)
        inputs = read_input_paths(args.paths, stdin)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    headers = build_headers(token, args.headers)
    paths = resolve_paths(inputs)

    stats = await run_uploads(
        paths, host, mode, options, headers=headers, transport=transport
    )

    # Failed files are reported per file; the run itself still succeeds
    display_final_stats(stats)
    return stats
