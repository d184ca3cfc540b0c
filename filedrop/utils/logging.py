"""
Structured JSON logging.

Every record carries timestamp, level, logger name, service and message.
Event helpers below add an "event" field plus whatever identifies the
upload, file or user involved, so log queries can filter on them:

    from filedrop.utils.logging import configure_logging, log_upload_started

    configure_logging('filedrop-api', 'INFO')
    log_upload_started(logger, user_id='456', file_ids=['123'], total_size=1024)
"""
import logging
import sys
from typing import Optional, Dict, Any, List
from pythonjsonlogger import jsonlogger


class ServiceFilter(logging.Filter):
    """Stamps the service name on every record."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record):
        record.service = self.service_name
        return True


class StructuredLogger:
    """Process-wide JSON logging setup. Configuring twice is a no-op."""

    _configured = False

    @classmethod
    def configure(cls, service_name: str, log_level: str = "INFO"):
        if cls._configured:
            return

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(jsonlogger.JsonFormatter(
            '%(timestamp)s %(levelname)s %(name)s %(message)s',
            rename_fields={"levelname": "level"},
            timestamp=True,
            json_ensure_ascii=False,
        ))
        handler.addFilter(ServiceFilter(service_name))

        root_logger = logging.getLogger()
        root_logger.handlers = [handler]
        root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        # boto3 and httpx log every request at INFO
        for noisy in ("botocore", "boto3", "urllib3", "httpx"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

        cls._configured = True


def _event_extra(event: str, duration_ms: Optional[float] = None, **fields) -> Dict[str, Any]:
    """
    Extra dict for an event record. None-valued fields are dropped so
    optional identifiers do not show up as nulls.
    """
    extra = {"event": event}
    extra.update({k: v for k, v in fields.items() if v is not None})
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)
    return extra


def log_upload_started(
    logger: logging.Logger,
    user_id: str,
    file_ids: List[str],
    total_size: int,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """Presigned PUTs issued for a batch of pending files."""
    extra = _event_extra(
        "upload_started",
        duration_ms=duration_ms,
        user_id=user_id,
        file_ids=file_ids,
        total_size=total_size,
        **kwargs
    )
    logger.info(f"Upload started: {len(file_ids)} file(s) for user {user_id}", extra=extra)


def log_upload_finished(
    logger: logging.Logger,
    user_id: str,
    file_id: str,
    batch_id: str,
    size: int,
    track_id: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """
    An upload confirmed against storage.

    Args:
        logger: Logger instance
        user_id: Owner
        file_id: Finished file
        batch_id: Client batch the file belongs to
        size: Size observed in storage, in bytes
        track_id: Track produced by processing
        duration_ms: Time spent in the finish call
    """
    extra = _event_extra(
        "upload_finished",
        duration_ms=duration_ms,
        user_id=user_id,
        file_id=file_id,
        batch_id=batch_id,
        size=size,
        track_id=track_id,
        **kwargs
    )
    logger.info(f"Upload finished: {file_id}", extra=extra)


def log_upload_rejected(
    logger: logging.Logger,
    user_id: str,
    reason: str,
    file_id: Optional[str] = None,
    **kwargs
):
    """
    An upload refused for size, quota or input reasons.

    reason is a short machine-readable tag (too_big, quota, ...); file_id
    is only known when the rejection happens at finish.
    """
    extra = _event_extra("upload_rejected", user_id=user_id, file_id=file_id, reason=reason, **kwargs)
    logger.warning(f"Upload rejected for user {user_id}: {reason}", extra=extra)


def log_file_deleted(logger: logging.Logger, user_id: str, file_id: str, size: int, **kwargs):
    """size is the number of bytes released from the user's usage."""
    extra = _event_extra("file_deleted", user_id=user_id, file_id=file_id, size=size, **kwargs)
    logger.info(f"File deleted: {file_id}", extra=extra)


def log_token_refreshed(logger: logging.Logger, user_id: str, expires_at: str, **kwargs):
    extra = _event_extra("storage_token_refreshed", user_id=user_id, expires_at=expires_at, **kwargs)
    logger.info(f"Storage token refreshed for user {user_id}", extra=extra)


def configure_logging(service_name: str, log_level: str = "INFO"):
    """Configure logging (alias for StructuredLogger.configure)."""
    StructuredLogger.configure(service_name, log_level)
