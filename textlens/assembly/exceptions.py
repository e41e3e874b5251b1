class AssemblyError(Exception):
    """Raised when the output document cannot be generated."""
