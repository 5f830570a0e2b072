"""
Record store boundary.

Extracted title block text can be published as one record per document. The
store itself is external; :class:`SharePointListSink` binds it to a
SharePoint list.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

from ..errors import RecordStoreError
from ..logging import get_logger
from ..text.region import PageText

logger = get_logger(__name__)


class RecordSink(Protocol):
    def create_item(self, fields: Mapping[str, Any]) -> Any:
        """Create one record and return its identifier."""
        ...


def extraction_record(document: Path, pages: Sequence[PageText]) -> dict[str, str]:
    """Fields describing the region text found in one document."""
    words = [page.text for page in pages if page.words]
    return {
        "Title": Path(document).stem,
        "RegionText": " ".join(words),
    }


def publish_extraction(sink: RecordSink, document: Path, pages: Sequence[PageText]) -> Any:
    """
    Publish a document's region text to ``sink``.

    Raises:
        RecordStoreError: If the store fails; other exceptions from the sink
            are wrapped into it
    """
    fields = extraction_record(document, pages)
    try:
        item_id = sink.create_item(fields)
    except RecordStoreError:
        raise
    except Exception as exc:
        raise RecordStoreError(f"Failed to publish {document}: {exc}") from exc

    logger.info(f"Published {Path(document).name} as item {item_id}")
    return item_id


class SharePointListSink:
    """Write records into a SharePoint list using app credentials."""

    def __init__(self, site_url: str, client_id: str, client_secret: str, list_name: str) -> None:
        try:
            from office365.runtime.auth.client_credential import ClientCredential
            from office365.sharepoint.client_context import ClientContext
        except ImportError as exc:  # pragma: no cover
            raise RecordStoreError(
                "office365-rest-python-client is required; install tiffolio[sharepoint]"
            ) from exc

        credentials = ClientCredential(client_id, client_secret)
        self._ctx = ClientContext(site_url).with_credentials(credentials)
        self._list_name = list_name

    def create_item(self, fields: Mapping[str, Any]) -> Any:
        target_list = self._ctx.web.lists.get_by_title(self._list_name)
        try:
            item = target_list.add_item(dict(fields)).execute_query()
        except Exception as exc:
            raise RecordStoreError(f"SharePoint list '{self._list_name}' rejected item: {exc}") from exc
        return item.id
