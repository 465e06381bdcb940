"""Constants used throughout filtergrid"""


# Filter Kinds
class FilterKind:
    """Column filter kind constants"""
    CHECKLIST = "checklist"
    TEXT_SEARCH = "text_search"
    NUMERIC_RANGE = "numeric_range"
    DATE_RANGE = "date_range"

    ALL = (CHECKLIST, TEXT_SEARCH, NUMERIC_RANGE, DATE_RANGE)
    RANGE_KINDS = (NUMERIC_RANGE, DATE_RANGE)


# Display text for null / empty values in filter lists
BLANK_DISPLAY = "(Blanks)"


# UI Colors
class UIColors:
    """UI color constants"""
    PRIMARY = "#3498db"
    PRIMARY_DARK = "#2980b9"
    SUCCESS = "#27ae60"
    SUCCESS_DARK = "#229954"
    DANGER = "#e74c3c"
    DANGER_DARK = "#c0392b"
    MUTED = "#666666"
    DISABLED = "#bdc3c7"
    FILTERED_HEADER = "#add8e6"
