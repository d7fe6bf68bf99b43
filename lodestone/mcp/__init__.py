"""Line-delimited JSON-RPC tool server over the lodestone store, scoring and planning."""

__all__ = ["protocol", "server", "tools"]