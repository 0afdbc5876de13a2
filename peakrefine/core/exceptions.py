"""
Custom exception classes for peakrefine.

Provides clear, module-specific error types for the refinement pipeline
so that configuration mistakes can be told apart from failures that
happen while scoring.
"""


class PeakRefineError(Exception):
    """Base exception for all peakrefine errors."""
    pass


# ============================================================================
# Data validation errors
# ============================================================================

class ValidationError(PeakRefineError):
    """Raised when input data fails validation checks."""
    pass


class MissingColumnError(ValidationError):
    """Raised when a required column is missing from a DataFrame."""

    def __init__(self, column: str, dataframe_name: str = "DataFrame", available: list = None):
        available_str = f" Available columns: {available}" if available else ""
        super().__init__(
            f"Required column '{column}' not found in {dataframe_name}.{available_str}"
        )
        self.column = column
        self.available = available


class EmptyDataError(ValidationError):
    """Raised when data is empty where it should not be."""

    def __init__(self, data_name: str = "data"):
        super().__init__(f"Empty {data_name} provided where non-empty data is required")
        self.data_name = data_name


class InvalidParameterError(ValidationError):
    """Raised when a parameter value is out of valid range."""

    def __init__(self, param: str, value, valid_range: str = ""):
        msg = f"Invalid value for '{param}': {value}"
        if valid_range:
            msg += f". Expected: {valid_range}"
        super().__init__(msg)
        self.param = param
        self.value = value


# ============================================================================
# Configuration errors
# ============================================================================

class ConfigurationError(PeakRefineError):
    """Raised before any computation when the run is misconfigured.

    Covers unknown kernel types, kernels whose weights sum to zero and
    bias curves whose resolution does not match the GC quantization.
    """
    pass


# ============================================================================
# Analysis errors
# ============================================================================

class AnalysisError(PeakRefineError):
    """Base class for errors raised while refining peaks."""
    pass


class BiasLookupError(AnalysisError):
    """Raised when a GC fraction has no entry in the bias curve."""

    def __init__(self, index: int, curve_size: int):
        super().__init__(
            f"GC index {index} outside bias curve with {curve_size} entries"
        )
        self.index = index
        self.curve_size = curve_size


class SequenceFetchError(AnalysisError):
    """Raised when the sequence provider cannot serve a window."""
    pass


# ============================================================================
# Validation helpers
# ============================================================================

def validate_dataframe(
    df,
    name: str = "DataFrame",
    required_columns: list = None,
    min_rows: int = 0,
) -> None:
    """Validate a DataFrame has expected shape and columns.

    Parameters
    ----------
    df : pd.DataFrame
        The DataFrame to validate.
    name : str
        Human-readable name for error messages.
    required_columns : list, optional
        Columns that must be present.
    min_rows : int
        Minimum number of rows required.

    Raises
    ------
    EmptyDataError
        If df is None or empty and min_rows > 0.
    MissingColumnError
        If a required column is missing.
    """
    import pandas as pd

    if df is None:
        raise EmptyDataError(name)

    if not isinstance(df, pd.DataFrame):
        raise ValidationError(f"Expected DataFrame for {name}, got {type(df).__name__}")

    if min_rows > 0 and len(df) < min_rows:
        if len(df) == 0:
            raise EmptyDataError(name)
        raise ValidationError(
            f"{name} has {len(df)} rows but at least {min_rows} are required"
        )

    if required_columns:
        for col in required_columns:
            if col not in df.columns:
                raise MissingColumnError(col, name, available=list(df.columns))


def validate_numeric_param(value, name: str, min_val=None, max_val=None) -> None:
    """Validate a numeric parameter is within acceptable bounds.

    Raises
    ------
    InvalidParameterError
        If the value is out of range.
    """
    if value is None:
        raise InvalidParameterError(name, value, "a number")
    if min_val is not None and value < min_val:
        raise InvalidParameterError(name, value, f">= {min_val}")
    if max_val is not None and value > max_val:
        raise InvalidParameterError(name, value, f"<= {max_val}")
