"""Daily LLM usage quota.

The governor caps assisted parses per user per day; counters live behind a storage collaborator
that offers atomic conditional updates.
"""
