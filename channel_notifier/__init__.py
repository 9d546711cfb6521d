"""Channel notifier: YouTube upload notifications for subscribed users."""
