from __future__ import annotations

from order_sync.application.ports.conversions import ConversionsPort
from order_sync.infrastructure.conversions.fake import FakeConversionsAdapter
from order_sync.shared.config import Settings
from order_sync.shared.logging import get_logger

log = get_logger(__name__)


def create_conversions_adapter(settings: Settings) -> ConversionsPort:
    """Factory that returns the appropriate conversions adapter based on settings."""
    if settings.conversions_provider == "meta":
        from order_sync.infrastructure.conversions.meta_capi import MetaConversionsAdapter

        if not settings.meta_pixel_id or not settings.meta_access_token:
            log.warning("meta pixel id or access token not set, falling back to fake conversions")
            return FakeConversionsAdapter()
        return MetaConversionsAdapter(
            pixel_id=settings.meta_pixel_id,
            access_token=settings.meta_access_token,
            api_version=settings.meta_api_version,
            test_event_code=settings.meta_test_event_code,
            timeout=settings.conversions_timeout_seconds,
        )

    log.info("using fake conversions adapter")
    return FakeConversionsAdapter()
