"""Integration adapters: Telegram, Graph API, JSON persistence, and the webhook app."""
