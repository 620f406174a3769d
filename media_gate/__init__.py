"""Media access and paywall enforcement service."""
