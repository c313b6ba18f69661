"""Schedule Import service: XER upload, persistence and read API."""
