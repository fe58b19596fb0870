"""UI package: tab domain services, events and the Qt window."""
