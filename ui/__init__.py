"""UI layer -- Rich dashboard and output formatters."""

from .dashboard import (
    ProgressDisplay,
    console,
    create_histogram,
    print_endpoint_ranking,
    print_final_results,
    print_header,
    print_history,
    print_latency_details,
    print_speed_result,
)
from .output import (
    create_result_json,
    format_csv_header,
    format_csv_row,
    format_text_result,
    history_record,
    save_json,
)

__all__ = [
    "ProgressDisplay",
    "console",
    "create_histogram",
    "create_result_json",
    "format_csv_header",
    "format_csv_row",
    "format_text_result",
    "history_record",
    "print_endpoint_ranking",
    "print_final_results",
    "print_header",
    "print_history",
    "print_latency_details",
    "print_speed_result",
    "save_json",
]
