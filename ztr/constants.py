# Streaming
DEFAULT_CHUNK_SIZE = 1_048_576  # 1 MiB
SPOOL_MAX_MEMORY = 8 * 1_048_576  # tar bodies of unknown size spill to disk past this

DEFAULT_COMPRESS_LEVEL = 6

DEFAULT_CONFIG_NAME = "ztr.toml"
DEFAULT_ARCHIVE_STEM = "archive"
PARTIAL_SUFFIX = ".partial"

# Zip record signatures
ZIP_LOCAL_MAGIC = b"PK\x03\x04"
ZIP_DESCRIPTOR_MAGIC = b"PK\x07\x08"
ZIP_CENTRAL_MAGIC = b"PK\x01\x02"
ZIP_END_MAGIC = b"PK\x05\x06"

ZIP_VERSION = 20  # 2.0: deflate, directories
ZIP_MADE_BY_UNIX = 3

ZIP_METHOD_STORED = 0
ZIP_METHOD_DEFLATED = 8

# General purpose flags
ZIP_FLAG_DATA_DESCRIPTOR = 1 << 3
ZIP_FLAG_UTF8 = 1 << 11

ZIP_ATTR_DIRECTORY = 0x10  # MS-DOS directory attribute

# Classic (non-zip64) limits
ZIP_MAX_SIZE = 0xFFFFFFFF
ZIP_MAX_ENTRIES = 0xFFFF
ZIP_MAX_NAME = 0xFFFF

DEFAULT_FILE_MODE = 0o644
DEFAULT_DIR_MODE = 0o755
