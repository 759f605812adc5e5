"""
Shared constants for the ingestion pipeline.

Step messages, metadata keys, chaos scenario names and parser defaults.
"""

ANONYMOUS_USER = "anonymous"
UNKNOWN = "unknown"

# Byte size placeholder until a parser reports the real length
DEFAULT_FILE_SIZE = 0

# Spreadsheet and text parser column names
DEFAULT_COLUMN_PREFIX = "Column"
LINE_NUMBER_COLUMN = "LineNumber"
CONTENT_COLUMN = "Content"

# Rows between cooperative yields to the event loop inside parsers
YIELD_EVERY_ROWS = 500

# Hash read chunk
HASH_CHUNK_SIZE = 64 * 1024

# Chaos scenario names
STORAGE_FAILURE_SCENARIO = "storage-failure"
PROCESSING_DELAY_SCENARIO = "processing-delay"
DATABASE_TIMEOUT_SCENARIO = "database-timeout"
NETWORK_LATENCY_SCENARIO = "network-latency"
CACHE_FAILURE_SCENARIO = "cache-failure"

# Chaos delays (milliseconds)
FILE_UPLOAD_CHAOS_DELAY_MS = 2000
FILE_DELETION_CHAOS_DELAY_MS = 1000
FILE_PROCESSING_CHAOS_DELAY_MS = 3000

# Default probability for scenarios without configuration
DEFAULT_SCENARIO_PROBABILITY = 0.001

# Metadata keys for structured logging
FILE_NAME_KEY = "file_name"
FILE_PATH_KEY = "file_path"
FILE_FORMAT_KEY = "file_format"
FILE_SIZE_KEY = "file_size"
USER_ID_KEY = "user_id"
CORRELATION_ID_KEY = "correlation_id"
STATE_KEY = "state"

# Step messages
INPUT_VALIDATION_STARTED = "Input validation started"
INPUT_VALIDATION_COMPLETED = "Input validation completed"
FILE_VALIDATION_STARTED = "File validation started"
FILE_VALIDATION_PASSED = "File validation passed"
FILE_SIZE_VALIDATION_FAILED = "File size validation failed"
FILE_SIZE_EXCEEDS_LIMIT = "File size exceeds limit"
FILE_EXTENSION_VALIDATION_FAILED = "File extension validation failed"
FILE_EXTENSION_BLOCKED = "File extension is blocked"
FILE_EXTENSION_NOT_ALLOWED = "File extension is not allowed"
FILE_NAME_REQUIRED = "File name is required"
FILE_SIZE_MUST_BE_POSITIVE = "File size must be greater than zero"
INVALID_FILE_NAME = "Invalid file name"
FILE_PATH_REQUIRED = "File path is required"
FILE_FORMAT_REQUIRED = "File format is required"
FILE_NOT_FOUND = "File not found"
FILE_UPLOAD_STARTED = "File upload started"
FILE_UPLOAD_SUCCESS = "File uploaded successfully"
FILE_UPLOAD_FAILED = "File upload failed"
FILE_DELETION_STARTED = "File deletion started"
FILE_DELETED_SUCCESS = "File deleted successfully"
FILE_DELETION_FAILED = "File deletion failed"
FILE_RETRIEVAL_STARTED = "File retrieval started"
FILE_RETRIEVED_SUCCESS = "File retrieved successfully"
FILE_RETRIEVAL_FAILED = "File retrieval failed"
FILE_EXISTS_CHECK_STARTED = "File existence check started"
FILE_EXISTS_CHECK_COMPLETED = "File existence check completed"
FILE_EXISTS_CHECK_FAILED = "File existence check failed"
FILE_PROCESSING_STARTED = "File processing started"
FILE_PROCESSED_SUCCESS = "File processed successfully"
FILE_PROCESSING_COMPLETED = "File parsed"
FILE_TOO_MANY_COLUMNS = "File has too many columns, truncating"
DUPLICATE_COLUMNS_RENAMED = "Duplicate column names renamed"
CSV_NO_HEADERS = "CSV file has no header row"
UNSUPPORTED_FILE_FORMAT = "Unsupported file format"
FORMAT_ERROR_RECORDED = "Format error recorded on dataset"
HASH_GENERATION_FAILED = "Failed to generate content hash"
EXCEL_WORKSHEET_NOT_FOUND = "Workbook does not contain any worksheet"
EXCEL_BULK_READ_FAILED = "Bulk range read failed, falling back to cell-by-cell"
