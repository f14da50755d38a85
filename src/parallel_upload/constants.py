# Version
VERSION = "0.2.0"

# Constants
DEFAULT_PARALLEL_CHUNKS = 32
DEFAULT_PARALLEL_FILES = 0  # unbounded
DEFAULT_RETRIES = 2
DEFAULT_RETRY_DELAY = 0.5  # seconds
DEFAULT_TIMEOUT = 300  # seconds
DEFAULT_UPDATE_INTERVAL = 0.5  # seconds
READ_BLOCK_SIZE = 64 * 1024

# Environment variables
ENV_UPLOAD_URL = "UPLOAD_URL"
ENV_UPLOAD_TOKEN = "UPLOAD_TOKEN"

# Upload categories
MODE_MULTIPART = "multipart"
MODE_BINARY = "binary"

MULTIPART_FIELD = "file"
OCTET_STREAM = "application/octet-stream"
