"""API Handler for device ingestion."""
from __future__ import annotations

import asyncio
import logging
from itertools import islice
from typing import Any, Iterable

from ..const import BULK_CHUNK_SIZE, DEVICES_ENDPOINT
from ..exceptions import DeviceValidationError
from ..mapping import mapping_for
from ..models import DeviceRecord
from .base_api import DevicePilotBaseApi, raise_if_cancelled

_LOGGER = logging.getLogger(__name__)


# --- DEVICE API --------------------------------------------------------------

class DeviceApi(DevicePilotBaseApi):
    """Handles the device ingestion endpoint."""


    # --- INGEST (POST /devices) -----------------------------------------------

    async def ingest(self, record: DeviceRecord, cancel_event: asyncio.Event | None = None) -> None:
        """Ingest a single device snapshot."""
        _check_record(record)
        await self._request_json("POST", DEVICES_ENDPOINT, record.as_payload(), cancel_event)


    # --- BULK INGEST (POST /devices) ------------------------------------------

    async def bulk_ingest(
        self, records: Iterable[DeviceRecord], cancel_event: asyncio.Event | None = None
    ) -> None:
        """
        Ingest many device snapshots.

        Records are sent in chunks of 500, one request per chunk, in input
        order. Cancelling may stop the upload between chunks, in which case
        the earlier chunks have already been ingested.
        """
        iterator = iter(records)
        chunk_index = 0

        while True:
            chunk = list(islice(iterator, BULK_CHUNK_SIZE))
            if not chunk:
                return

            if chunk_index:
                raise_if_cancelled(cancel_event)

            for record in chunk:
                _check_record(record)

            _LOGGER.debug("Ingesting chunk %d (%d devices)", chunk_index, len(chunk))
            await self._request_json(
                "POST",
                DEVICES_ENDPOINT,
                [record.as_payload() for record in chunk],
                cancel_event,
            )

            if len(chunk) < BULK_CHUNK_SIZE:
                return
            chunk_index += 1


    # --- INGEST OBJECT ----------------------------------------------------------

    async def ingest_object(self, obj: Any, cancel_event: asyncio.Event | None = None) -> None:
        """Map a marked object to a record and ingest it."""
        record = mapping_for(type(obj)).to_record(obj)
        await self.ingest(record, cancel_event)


    # --- BULK INGEST OBJECTS ------------------------------------------------------

    async def bulk_ingest_objects(
        self,
        objs: Iterable[Any],
        cancel_event: asyncio.Event | None = None,
        cls: type | None = None,
    ) -> None:
        """
        Map a homogeneous sequence of marked objects and ingest them in bulk.

        The mapping is looked up once, from ``cls`` or the type of the first
        item, and reused for the whole sequence.
        """
        items = list(objs)
        if not items:
            return

        if cls is None:
            cls = type(items[0])

        records = mapping_for(cls).to_records(items, cls)
        await self.bulk_ingest(records, cancel_event)


def _check_record(record: Any) -> None:
    if not isinstance(record, DeviceRecord):
        raise DeviceValidationError(
            f"Expected a DeviceRecord, got {type(record).__name__}"
        )
