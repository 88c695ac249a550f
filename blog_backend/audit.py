"""
Audit trail hook.

Persisting audit entries belongs to a separate service; here every event is
emitted as a structured record on the ``blog_backend.audit`` logger so that
whatever collects logs can forward it.
"""
import logging

audit_logger = logging.getLogger("blog_backend.audit")


def record(action: str, entity_type: str, entity_id, actor_id, **metadata) -> None:
    audit_logger.info(
        "%s %s %s by user %s",
        action,
        entity_type,
        entity_id,
        actor_id,
        extra={
            "audit_action": action,
            "audit_entity_type": entity_type,
            "audit_entity_id": entity_id,
            "audit_actor_id": actor_id,
            "audit_metadata": metadata,
        },
    )
