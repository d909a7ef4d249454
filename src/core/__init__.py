"""Core domain package for the DM auto-responder.

Core contains reply rules, the first-contact processor, and the poll
scheduler without any Telegram, HTTP, or file-format specific code.
"""
