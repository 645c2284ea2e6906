"""Data models shared by the backends, the core and the API."""
