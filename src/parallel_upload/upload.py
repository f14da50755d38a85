import io
import logging
import re
import sys

import httpx

from parallel_upload.constants import MULTIPART_FIELD, OCTET_STREAM
from parallel_upload.errors import InvalidHeaderError, TransferError
from parallel_upload.progress import ProgressReader, ProgressState
from parallel_upload.structs import UploadMode, UploadTarget

logger = logging.getLogger(__name__)

# RFC 7230 token characters
_HEADER_NAME = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_HEADER_VALUE = re.compile(r"^[\t\x20-\x7e]*$")


class TransferHeaders:
    """
    Case-insensitive header mapping attached to outbound requests.

    Inserting a name that is already present replaces every earlier value.
    """

    def __init__(self, headers=None):
        self._headers = httpx.Headers()
        if headers:
            for name, value in dict(headers).items():
                self.add_header(name, value)

    def add_header(self, name: str, value: str):
        """
        Set a header after checking it can be sent on the wire.

        Raises:
            InvalidHeaderError: If the name is not a token or the value holds
                control or non-ASCII characters. The mapping is left unchanged.
        """
        if not _HEADER_NAME.match(name or ""):
            raise InvalidHeaderError(f"Invalid header name: {name!r}")
        if not _HEADER_VALUE.match(value):
            raise InvalidHeaderError(f"Invalid value for header {name}: {value!r}")
        self._headers[name] = value

    def copy(self) -> "TransferHeaders":
        headers = TransferHeaders()
        headers._headers = self._headers.copy()
        return headers

    def to_httpx(self) -> httpx.Headers:
        return self._headers.copy()

    def __getitem__(self, name: str) -> str:
        return self._headers[name]

    def __contains__(self, name: str) -> bool:
        return name in self._headers

    def __len__(self) -> int:
        return len(self._headers)

    def __eq__(self, other) -> bool:
        if not isinstance(other, TransferHeaders):
            return NotImplemented
        return self._headers == other._headers

    def __repr__(self) -> str:
        return f"TransferHeaders({dict(self._headers.items())!r})"


def apply_header(headers: TransferHeaders, name: str, value: str) -> bool:
    """Add a header, reporting and skipping it if it is invalid."""
    try:
        headers.add_header(name, value)
    except InvalidHeaderError as e:
        print(f"Error: {e}", file=sys.stderr)
        return False
    return True


class AsyncUploader:
    """Send whole files to the upload endpoint with httpx."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        url: str,
        mode: UploadMode = UploadMode.MULTIPART,
        headers: TransferHeaders | None = None,
    ):
        """
        Initialize the uploader.

        Args:
            client: Shared httpx.AsyncClient instance
            url: Upload endpoint
            mode: How the file body is shaped
            headers: Headers sent with every request
        """
        self.client = client
        self.url = url
        self.mode = mode
        self.headers = headers if headers is not None else TransferHeaders()

    def headers_for(self, target: UploadTarget) -> TransferHeaders:
        """
        Per-file headers. Binary bodies carry no metadata, so the file name
        travels in X-Filename.
        """
        headers = self.headers.copy()
        if self.mode == UploadMode.BINARY:
            apply_header(headers, "Content-Type", OCTET_STREAM)
            apply_header(headers, "X-Filename", target.filename)
        return headers

    def build_request(
        self,
        target: UploadTarget,
        fileobj,
        headers: TransferHeaders | None = None,
        progress: ProgressState | None = None,
    ) -> httpx.Request:
        """
        Build the POST request for one file.

        Args:
            target: File being uploaded
            fileobj: Binary file object opened on target.path
            headers: Request headers, defaults to headers_for(target)
            progress: Counter to feed as the body is read

        Returns:
            httpx.Request ready to be sent
        """
        if headers is None:
            headers = self.headers_for(target)
        request_headers = headers.to_httpx()

        if self.mode == UploadMode.BINARY:
            data = fileobj.read()
            if progress is None:
                return self.client.build_request(
                    "POST", self.url, content=data, headers=request_headers
                )

            reader = ProgressReader(io.BytesIO(data), progress)
            request_headers["Content-Length"] = str(len(data))
            return self.client.build_request(
                "POST", self.url, content=reader.aiter_blocks(), headers=request_headers
            )

        reader = fileobj if progress is None else ProgressReader(fileobj, progress)
        return self.client.build_request(
            "POST",
            self.url,
            files={MULTIPART_FIELD: (target.filename, reader, OCTET_STREAM)},
            headers=request_headers,
        )

    async def upload_file(
        self, target: UploadTarget, progress: ProgressState | None = None
    ) -> httpx.Response:
        """
        Upload one file in a single request.

        Raises:
            OSError: If the file cannot be opened or read
            httpx.HTTPError: On connection or protocol failures
            TransferError: If the server answers with a non-2xx status
        """
        headers = self.headers_for(target)

        with open(target.path, "rb") as f:
            request = self.build_request(target, f, headers=headers, progress=progress)
            logger.debug("POST %s (%s, %s)", self.url, self.mode, target.path)
            response = await self.client.send(request)

        if not response.is_success:
            raise TransferError(response.status_code, response.text)

        return response
