# portal/core/errors.py


class ConflictError(ValueError):
    """Business-rule violation caused by existing data (duplicates, rows still in use)."""
