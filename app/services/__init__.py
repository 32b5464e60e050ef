"""Business logic services for Zapdesk."""

# Service modules are imported individually where needed
# to avoid circular imports

__all__ = [
    "identity",
    "conversation_store",
    "reconciliation",
    "transfer",
    "responder",
    "webhook_handler",
    "whatsapp",
    "contacts",
    "outbound",
    "history_sync",
]
