"""Parallel HTTP file uploader."""

import asyncio
import sys

from parallel_upload.cli import cli


def main():
    try:
        asyncio.run(cli())
    except KeyboardInterrupt:
        print("\nUpload interrupted by user.")
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)
