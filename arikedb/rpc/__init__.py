"""gRPC plumbing of the ArikeDB client: wire, session and channels."""
