"""
Configuration constants for the media reorganizer.
"""
from datetime import time

# --- File Type Definitions ---
IMAGE_EXTS = {'.jpg', '.jpeg', '.png', '.gif', '.bmp', '.tiff', '.tif', '.heic', '.heif'}
VIDEO_EXTS = {
    '.mp4', '.mov', '.avi', '.mkv', '.m4v', '.3gp', '.wmv',
    '.flv', '.webm', '.mpg', '.mpeg', '.mts', '.m2ts',
}

# Extension to Type Mapping
EXT_TO_TYPE = {}
for ext in IMAGE_EXTS: EXT_TO_TYPE[ext] = 'image'
for ext in VIDEO_EXTS: EXT_TO_TYPE[ext] = 'video'

# Synology (and similar NAS) thumbnail/index folders
EXCLUDED_DIR_MARKERS = ('@eaDir',)

# --- Metadata Parsing ---
DATE_TAGS = [
    'EXIF DateTimeOriginal',
    'EXIF DateTimeDigitized',
    'Image DateTime',
]

# MediaInfo "General" track fields, in priority order
MEDIAINFO_DATE_FIELDS = [
    'recorded_date',
    'encoded_date',
    'tagged_date',
]

# Fields read by exiftool when the native decoders come up empty
EXIFTOOL_READ_FIELDS = ['DateTimeOriginal', 'CreateDate', 'MediaCreateDate']

# Fields written so every viewer agrees on the capture time
EXIFTOOL_WRITE_FIELDS = ['DateTimeOriginal', 'CreateDate', 'ModifyDate']

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"

EXIFTOOL_DOCKER_IMAGE = "exiftool/exiftool"

# --- Date Resolution ---
MIN_YEAR = 1800
MAX_YEAR = 2100

# Two-digit years above this are 19xx, the rest 20xx
CENTURY_CUTOVER = 50

# Dates without a time component resolve to midday
DEFAULT_TIME_OF_DAY = time(12, 0, 0)

# --- Organization ---
FOLDER_PATTERN = "{year:04d}/{year:04d}-{month:02d}"
UNKNOWN_DIR = "unknown"
DEFAULT_DESCRIPTION = "photo"

# --- Concurrency & Progress ---
DEFAULT_WORKERS = 4
PROGRESS_EVERY_FILES = 100
PROGRESS_EVERY_SECONDS = 10.0

COPY_CHUNK_SIZE = 1024 * 1024  # 1 MB

# Suffix for in-flight copies, renamed over the destination once complete
PARTIAL_SUFFIX = ".part"

LOG_FILENAME = "reorganizer.log"
