class ImageStoreError(Exception):
    """Raised when a temporary image cannot be written or read."""
