"""Application services public API."""

from sql_dump_loader.application.services.import_service import ImportJobService
from sql_dump_loader.application.services.upload_receiver import UploadReceiver

__all__ = ["ImportJobService", "UploadReceiver"]
