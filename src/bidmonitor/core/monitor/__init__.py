"""Monitor loop: polling, keyword matching, results and export."""

from .export import default_export_name, export_results, results_to_csv, results_to_text
from .loop import (
    CheckReport,
    ConnectionTestReport,
    InvalidTargetError,
    MonitorLoop,
    validate_target_url,
)
from .matching import (
    BIDDING_TERMS,
    Link,
    ParsedPage,
    find_bidding_links,
    is_bidding_link,
    parse_page,
    passes_keyword_gate,
    scan_page,
)
from .state import (
    RESULT_CAP,
    MonitoredWebsite,
    MonitorSession,
    MonitorState,
    Phase,
    ResultItem,
    ResultType,
    Stats,
)

__all__ = [
    # Loop
    "MonitorLoop",
    "CheckReport",
    "ConnectionTestReport",
    "InvalidTargetError",
    "validate_target_url",
    # Matching
    "BIDDING_TERMS",
    "Link",
    "ParsedPage",
    "parse_page",
    "passes_keyword_gate",
    "is_bidding_link",
    "find_bidding_links",
    "scan_page",
    # State
    "RESULT_CAP",
    "MonitoredWebsite",
    "MonitorSession",
    "MonitorState",
    "Phase",
    "ResultItem",
    "ResultType",
    "Stats",
    # Export
    "default_export_name",
    "export_results",
    "results_to_csv",
    "results_to_text",
]
