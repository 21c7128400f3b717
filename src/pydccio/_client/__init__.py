"""Channel clients owned by :class:`pydccio.client.DccIoClient`."""
