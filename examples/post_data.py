"""Post a single outlet device to DevicePilot.

Usage: DP_TOKEN=<token> python examples/post_data.py
"""
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import datetime

from devicepilot import DevicePilotClient, device_id, device_property, device_timestamp


@dataclass
class OutletDevice:
    id: str = device_id()
    latitude: float = device_property(default=0.0)
    longitude: float = device_property(default=0.0)
    is_on: bool = device_property("isOn", default=False)
    timestamp: datetime | None = device_timestamp(default=None)


async def main() -> None:
    logging.basicConfig(level=logging.DEBUG)

    async with DevicePilotClient(os.environ["DP_TOKEN"]) as client:
        await client.async_ingest_object(
            OutletDevice(id="outlet1", latitude=53.70076, longitude=-2.28442)
        )


if __name__ == "__main__":
    asyncio.run(main())
