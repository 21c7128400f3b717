"""Endpoint paths and protocol constants for the DCC IO daemon."""

from __future__ import annotations

# HTTP read endpoints (polled)
CONNECTIONS_ENDPOINT = "/connections"
SYSTEMS_ENDPOINT = "/api/systems"
PORTS_ENDPOINT = "/api/ports"

# HTTP command endpoints
CREATE_CONNECTION_ENDPOINT = "/connections/create"
SET_ROLE_ENDPOINT = "/connections/setRole"
REQUEST_VERSION_ENDPOINT = "/connections/requestVersion"
THROTTLES_ENDPOINT = "/api/throttles"
ACCESSORIES_ENDPOINT = "/api/accessories"

# Server-sent event stream
EVENTS_ENDPOINT = "/api/events"

USER_AGENT = "pydccio"

#: JMRI ``PowerManager`` numeric states carried by some power events.
JMRI_POWER_ON = 2
JMRI_POWER_OFF = 4

#: Hex fragment of an XpressNet command-station version reply.
VERSION_REPLY_HEX = "63 21"
VERSION_REPLY_MARKERS = ("Software Version", "CS Version")

#: Marker the daemon uses for "not reported" command-station fields.
UNSET_MARKER = "-1"

#: Functions rendered by the panel; the model accepts any non-negative key.
DISPLAYED_FUNCTIONS = range(0, 13)
