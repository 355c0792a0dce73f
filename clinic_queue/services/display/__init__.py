from .call_display_feed import (
    DEFAULT_HISTORY_LIMIT,
    CallDisplayFeed,
    board_since,
    build_display_board,
    call_signature,
    to_display_call,
)
