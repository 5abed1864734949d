"""Remote transport and async bridging helpers."""
