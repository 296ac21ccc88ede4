"""Settings, logging and the exception hierarchy."""
