"""Internal constants shared across the library."""

USER_AGENT = "cellgeo/1 (+aiohttp)"

#: Per-stage timeout in seconds (cache read, aggregation query, provider call).
DEFAULT_STAGE_TIMEOUT: float = 10.0
#: Overall deadline for a single resolution, in seconds.
DEFAULT_RESOLUTION_DEADLINE: float = 5 * 60.0
#: Upper bound on device records scanned per aggregation.
DEFAULT_MAX_SCAN_RECORDS: int = 100
DEFAULT_PAGE_SIZE: int = 25

#: Accuracy (meters) assumed for device fixes that did not report one.
DEFAULT_FIX_ACCURACY_M: float = 50.0

UNWIREDLABS_ENDPOINT = "https://eu1.unwiredlabs.com"
UNWIREDLABS_PROCESS_PATH = "/v2/process.php"
UNWIREDLABS_RADIOS: frozenset[str] = frozenset({"gsm", "umts", "lte", "nbiot", "cdma", "nr"})

#: Prefix of ``DeviceLocationRecord.device_source`` values.
DEVICE_SOURCE_PREFIX = "device:"
