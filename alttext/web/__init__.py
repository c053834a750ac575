"""HTTP surface: FastAPI app, routes, auth, rate limiting and wiring."""
