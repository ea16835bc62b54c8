"""Core domain package for spacewatch.

Core contains status resolution, deduplication rules, dispatch and scheduling
without any Twitter, Telegram or storage-specific code, keeping the business
logic portable.
"""
