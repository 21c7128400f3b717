"""State/store layer.

This package is the single source of truth for how incoming data from
the connection poll, the event stream and the command channel is merged
into one consistent mirrored snapshot.
"""
