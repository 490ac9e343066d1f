"""
Shared constants used across ZipDrop.
"""

# Validation limits
MAX_FILES = 50
MAX_SINGLE_FILE_SIZE = 500 * 1024 * 1024  # 500MB
MAX_TOTAL_SIZE = 1024 * 1024 * 1024  # 1GB

# Allowed file extensions (lower-case, no dot)
IMAGE_EXTENSIONS = ["jpg", "jpeg", "png", "gif", "bmp", "tiff", "tif", "webp", "heic", "heif"]
DOCUMENT_EXTENSIONS = ["pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "txt", "rtf", "csv"]
ARCHIVE_EXTENSIONS = ["zip", "tar", "gz", "7z", "rar"]
VIDEO_EXTENSIONS = ["mov", "mp4", "avi", "mkv", "webm", "m4v"]
AUDIO_EXTENSIONS = ["mp3", "wav", "aac", "flac", "m4a", "ogg"]
CODE_EXTENSIONS = ["json", "xml", "html", "css", "js", "ts", "py", "rs", "go", "swift"]
OTHER_EXTENSIONS = ["svg", "ico", "dmg", "pkg", "app"]

ALLOWED_EXTENSIONS = frozenset(
    IMAGE_EXTENSIONS + DOCUMENT_EXTENSIONS + ARCHIVE_EXTENSIONS + VIDEO_EXTENSIONS
    + AUDIO_EXTENSIONS + CODE_EXTENSIONS + OTHER_EXTENSIONS
)

# Image conversion
CONVERTIBLE_IMAGE_EXTENSIONS = frozenset(["jpg", "jpeg", "png", "gif", "bmp", "tiff", "tif"])
TARGET_IMAGE_FORMAT = "webp"
TARGET_IMAGE_QUALITY = 80

# Output naming
ARCHIVE_TYPE_TAG = "archive"
ARCHIVE_NAME_PREFIX = "archive"
DEFAULT_EXTENSION = "bin"
SHORT_ID_LENGTH = 8

# Upload retry policy
MAX_UPLOAD_ATTEMPTS = 3
INITIAL_RETRY_DELAY_MS = 1000
BACKOFF_MULTIPLIER = 2

TRANSIENT_ERROR_MARKERS = (
    "timeout", "connection", "temporarily", "503", "502", "504", "retry", "network"
)
RETRYABLE_STATUS_CODES = frozenset([502, 503, 504])

# Credential check
CONNECTION_TEST_KEY = ".zipdrop-connection-test"
CONNECTION_TEST_BODY = b"test"

# Object keys and content types
UPLOAD_KEY_PREFIX = "u/"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
CONTENT_TYPES = {
    "webp": "image/webp",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "pdf": "application/pdf",
    "zip": "application/zip",
    "mp4": "video/mp4",
    "mov": "video/quicktime",
}

# S3 Provider endpoints
CLOUDFLARE_R2_ENDPOINT_TEMPLATE = "https://{account_id}.r2.cloudflarestorage.com"
CLOUDFLARE_R2_REGION = "auto"

# Configuration paths
DEFAULT_CONFIG_DIR = "~/.config/zipdrop"
CONFIG_DIR_ENV = "ZIPDROP_CONFIG_DIR"
STORAGE_CONFIG_FILENAME = "config.json"
SETTINGS_FILENAME = "settings.json"
DEMO_OUTPUT_DIRNAME = "ZipDrop"
TEMP_OUTPUT_DIRNAME = "zipdrop"
