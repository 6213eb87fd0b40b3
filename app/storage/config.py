"""
S3 transfer configuration.
Constants for multipart uploads and object metadata.
"""

# Multipart Upload Settings
MULTIPART_THRESHOLD = 5 * 1024 * 1024   # 5MB (S3/MinIO minimum for multipart)
MULTIPART_CHUNKSIZE = 10 * 1024 * 1024  # 10MB per part
MAX_CONCURRENCY = 4                      # Parallel part uploads per file

# Object metadata key holding the original file name
FILENAME_METADATA_KEY = "filename"
