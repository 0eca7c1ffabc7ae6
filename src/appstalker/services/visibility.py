"""Visibility change detection.

Only revealing an app (hidden → visible) is news for followers. Hiding an
app, or a client re-sending the state it already has, stays silent.
"""


def should_notify(previous_visible: bool, next_visible: bool) -> bool:
    return not previous_visible and next_visible
