"""HTTP middleware: auth dependency, rate limiting, security headers."""
