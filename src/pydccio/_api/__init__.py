"""REST command endpoints of the DCC IO daemon."""
