"""Internal constants shared across the library."""

FRAME_DELIMITER = b"##"
FIELD_SEPARATOR = "$"
FRAME_PREFIX = "$$"

#: Retained-buffer ceiling for the frame reassembler (bytes).
DEFAULT_MAX_BUFFER = 64 * 1024

BAUD_RATE = 115200
#: Seconds between device open attempts.
DEFAULT_RETRY_DELAY = 5.0
#: Bytes requested per blocking serial read.
SERIAL_READ_SIZE = 256
#: Serial read timeout in seconds; bounds how long stop() waits for the reader.
SERIAL_READ_TIMEOUT = 0.5

# ------------------------------------------------------------------
# Device discovery
# ------------------------------------------------------------------

DEVICE_MANUFACTURERS: tuple[str, ...] = ("Arduino", "wch.cn")
# CH340 USB-serial bridge used on Arduino clones.
DEVICE_VENDOR_IDS: tuple[int, ...] = (0x1A86,)

# ------------------------------------------------------------------
# Subscriber wire protocol
# ------------------------------------------------------------------

WEBSOCKET_PATH = "/ws"
DEFAULT_HTTP_HOST = "0.0.0.0"
DEFAULT_HTTP_PORT = 8080

# ------------------------------------------------------------------
# Reference store
# ------------------------------------------------------------------

FIRESTORE_BASE_URL = "https://firestore.googleapis.com/v1"
DEFAULT_COLLECTION = "sampleData"
# Cloud Datastore scope covers Firestore document reads.
FIRESTORE_SCOPES: tuple[str, ...] = ("https://www.googleapis.com/auth/datastore",)
