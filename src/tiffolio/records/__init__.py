from .sink import RecordSink, SharePointListSink, extraction_record, publish_extraction

__all__ = [
    "RecordSink",
    "SharePointListSink",
    "extraction_record",
    "publish_extraction",
]
