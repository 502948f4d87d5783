# status_text.py
# Description: "Last saved" status strings for auto-save indicators
#
# Imports
from datetime import datetime, timezone
from typing import Optional
#
########################################################################################################################
#
# Functions:

def format_last_saved(last_saved: Optional[datetime], now: Optional[datetime] = None) -> Optional[str]:
    """
    Describe when a draft was last saved.

    Returns None if it was never saved, otherwise "Saved just now" (under a
    minute), "Saved N minute(s) ago" (under an hour) or "Saved at HH:MM" in
    local time.
    """
    if last_saved is None:
        return None

    if last_saved.tzinfo is None:
        last_saved = last_saved.replace(tzinfo=timezone.utc)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    diff_minutes = int((now - last_saved).total_seconds() // 60)
    if diff_minutes < 1:
        return "Saved just now"
    if diff_minutes < 60:
        return f"Saved {diff_minutes} minute{'s' if diff_minutes > 1 else ''} ago"
    return f"Saved at {last_saved.astimezone().strftime('%H:%M')}"

#
# End of status_text.py
########################################################################################################################
