import os
import tempfile

# Mandatory
AWS_REGION = os.getenv("AWS_REGION", "ap-southeast-2")
MEDIA_TABLE = os.getenv("MEDIA_TABLE", "simple_media")  # DynamoDB table, partition key "id"

# Optional endpoint overrides (LocalStack, MinIO, DynamoDB Local)
S3_ENDPOINT_URL       = os.getenv("S3_ENDPOINT_URL") or None
DYNAMODB_ENDPOINT_URL = os.getenv("DYNAMODB_ENDPOINT_URL") or None

# Server transcoder
DEFAULT_CRF        = int(os.getenv("DEFAULT_CRF", "30"))
MAX_VIDEO_EDGE     = int(os.getenv("MAX_VIDEO_EDGE", "1920"))
POSTER_OFFSET_SEC  = float(os.getenv("POSTER_OFFSET_SEC", "1"))
FFMPEG_BIN         = os.getenv("FFMPEG_BIN", "ffmpeg")
FFPROBE_BIN        = os.getenv("FFPROBE_BIN", "ffprobe")
TRANSCODE_TMP_ROOT = os.getenv("TRANSCODE_TMP_ROOT") or tempfile.gettempdir()

# App settings
PORT            = int(os.getenv("PORT", "8080"))
SERVICE_VERSION = os.getenv("SERVICE_VERSION", "1.0.0")
LOG_LEVEL       = os.getenv("LOG_LEVEL", "INFO").upper()

# Client-side processor budget
CLIENT_MAX_PROCESSING_MS     = int(os.getenv("CLIENT_MAX_PROCESSING_MS", "1500"))
CLIENT_MAX_MEMORY_BYTES      = int(os.getenv("CLIENT_MAX_MEMORY_BYTES", str(150 * 1024 * 1024)))
CLIENT_MAX_DIMENSION         = int(os.getenv("CLIENT_MAX_DIMENSION", "4000"))  # long edge
CLIENT_MIN_REDUCTION_PERCENT = int(os.getenv("CLIENT_MIN_REDUCTION_PERCENT", "40"))
CLIENT_FAST_ACCEPT_MS        = int(os.getenv("CLIENT_FAST_ACCEPT_MS", "800"))
QUALITY_LADDER               = (0.82, 0.76, 0.70)
FALLBACK_DIMENSIONS          = (2000, 2000)  # assumed when probing fails

# Validation (fail early in API startup)
def assert_core_env():
    missing = [k for k,v in dict(
        AWS_REGION=AWS_REGION, MEDIA_TABLE=MEDIA_TABLE
    ).items() if not v]

    if missing:
        raise RuntimeError(f"Missing required env vars: {missing}")
