"""Business logic services for the notification pipeline."""
