"""Business logic services.

Services are called by route handlers and orchestrate database operations.
``conversations`` is the entry point for routes; ``conversation_store``,
``message_log`` and ``directory`` are the storage-facing building blocks.
"""
