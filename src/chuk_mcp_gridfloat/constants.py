"""
Constants for chuk-mcp-gridfloat server.

All magic strings, tile naming conventions, and configuration values live here.
"""


class ServerConfig:
    NAME = "chuk-mcp-gridfloat"
    VERSION = "0.1.0"
    DESCRIPTION = "USGS GridFloat Elevation Tile Retrieval & Height-Field MCP Server"


class EnvVar:
    DATA_DIR = "GRIDFLOAT_DATA_DIR"
    SMALL_MEMORY = "GRIDFLOAT_SMALL_MEMORY"
    MEMORY_THRESHOLD = "GRIDFLOAT_MEMORY_THRESHOLD"
    MAX_WORKERS = "GRIDFLOAT_MAX_WORKERS"
    MCP_STDIO = "MCP_STDIO"


DEFAULT_DATA_DIR = "~/.cache/chuk-mcp-gridfloat"

# Geodesy
EARTH_RADIUS_M = 6_371_000.0

# Distance from a cell centre below which a query is treated as "on" the centre
CENTRE_TOLERANCE_M = 1.0

# Tile naming (USGS 1/3 arc-second GridFloat staged products)
REMOTE_TILE_DIRECTORY = (
    "https://prd-tnm.s3.amazonaws.com/StagedProducts/Elevation/13/GridFloat/"
)
REMOTE_TILE_TEMPLATE = "USGS_NED_13_{}_GridFloat.zip"
REMOTE_TILE_FALLBACK_TEMPLATE = "{}.zip"
LOCAL_TILE_TEMPLATE = "usgs_ned_13_{}_gridfloat.{}"
ALTERNATIVE_MEMBER_TEMPLATE = "float{}_13.{}"
ARCHIVE_TEMPLATE = "{}.zip"
HEADER_EXTENSION = "hdr"
DATA_EXTENSION = "flt"
TILE_SIZE_DEGREES = 1.0

# Grid data
FLOAT_SIZE_BYTES = 4
DEFAULT_NODATA = -9999.0
NODATA_SENTINEL = -9999.0
# Any elevation at or below this is treated as missing for a centre-cell hit
CENTRE_NODATA_FLOOR = -9000.0
SMALL_MEMORY_CHUNK_CELLS = 1 << 20

# Memory budget
DEFAULT_MEMORY_THRESHOLD_BYTES = 500_000_000

# Height field defaults
DEFAULT_N_CELLS = 50
DEFAULT_ANTENNA_HEIGHT_M = 0.0
MAX_HEIGHT_FIELD_CELLS = 1000
MAX_RADIUS_M = 200_000.0
# Rays shorter than this step inward in quarter-length decrements
LOS_CLOSE_IN_DISTANCE_M = 250.0

# Point queries
MAX_POINTS = 500

# Network & retry
DOWNLOAD_TIMEOUT_S = 60
DOWNLOAD_CHUNK_BYTES = 1024 * 1024
RETRY_ATTEMPTS = 3
RETRY_WAIT_MIN = 1
RETRY_WAIT_MAX = 10

OUTPUT_MODES = ["json", "text"]


class ErrorMessages:
    INVALID_LATITUDE = "Latitude must be between -90 and 90, got {}"
    INVALID_LONGITUDE = "Longitude must be between -180 and 180, got {}"
    OUTSIDE_TILE_GRID = (
        "Point ({}, {}) is outside the nLLwLLL tile grid: "
        "latitude must be in [0, 90) and longitude in (-180, 0]"
    )
    INVALID_BASE_NAME = "Invalid tile base name '{}': expected nLLwLLL"
    INVALID_TILE_CODE = "Invalid tile code {}: expected a non-negative integer"
    INVALID_RADIUS = "radius_m must be > 0, got {}"
    RADIUS_TOO_LARGE = "radius_m ({:.0f}) exceeds maximum ({:.0f})"
    INVALID_N_CELLS = "n_cells must be between 1 and {}, got {}"
    INVALID_DISTANCE = "distance_m must be >= 0, got {}"
    NO_POINTS = "points must contain at least one [lat, lon] pair"
    TOO_MANY_POINTS = "Too many points ({}), maximum is {}"
    INVALID_POINT = "Point {} must be a [lat, lon] pair"
    HEADER_FIELDS = "Malformed header line {} in {}: expected 2 fields, got {}: {!r}"
    HEADER_MISSING_KEY = "Header {} is missing required key {}"
    FLOAT_SIZE = "Single-precision floats are {} bytes on this platform; GridFloat requires 4"
    MISSING_HEADER_FILE = "Tile header file not found: {}"
    MISSING_DATA_FILE = "Tile data file not found: {}"
    DATA_FILE_SIZE = "Data file {} holds {} bytes; {} rows x {} cols needs {}"
    MISSING_TILE = "Tile {} ({}) is not loaded; needed for ({:.6f}, {:.6f})"
    NO_DATA = "No valid samples in {} at ({:.6f}, {:.6f}) in tile {}"
    DOWNLOAD_FAILED = "Could not download tile {}: tried {}"
    MEMBER_MISSING = "Archive {} contains neither {} nor {}"
    NETWORK_ERROR = "Failed to fetch {} after {} retries: {}"


class SuccessMessages:
    STATUS = "GridFloat MCP Server v{} ({} tiles loaded, data dir: {})"
    TILE_NAME = "Tile {} ({}) covers ({:.0f}, {:.0f}) to ({:.0f}, {:.0f})"
    FETCH_COMPLETE = "Tile {} ready: {} x {} cells, {} invalid"
    POINT_ELEVATION = "Elevation at point: {:.1f}m (tile {})"
    POINTS_ELEVATION = "Retrieved elevation for {} points ({} without data)"
    HEIGHT_FIELD_COMPLETE = (
        "Height field computed: {0}x{0} cells at {1:.1f}m spacing, {2} without data"
    )
    DISTANCE = "Distance: {:.1f}m"
    DESTINATION = "Destination: ({:.6f}, {:.6f})"
    BEARING = "Bearing: {:.2f} degrees"
