"""
Publish Training Example
==========================

This example walks through the life of a training artifact:

    1. Save a microlearning module in its source language
    2. Add a translation and record it in language_availability
    3. Save a phishing simulation and wait for its keys to become readable
    4. Search the catalog
    5. Run a health check

It runs entirely in memory. To talk to a real KV namespace, drop the
``transports=`` argument and set AWAREKV_KV__ACCOUNT_ID, AWAREKV_KV__API_TOKEN
and the namespace IDs in the environment.

Usage:
    python examples/publish_training.py
"""

from __future__ import annotations

import asyncio
import json

from awarekv import AwareKV, AwareKVConfig, ResourceType
from awarekv.core.config import ConsistencyConfig
from awarekv.core.logging import configure_logging
from awarekv.infrastructure.key_schema import build_expected_phishing_keys
from awarekv.infrastructure.kv_transport import InMemoryKVTransport


async def main() -> None:
    config = AwareKVConfig(
        log_level="INFO",
        consistency=ConsistencyConfig(max_wait_ms=500, check_interval_ms=100),
    )
    configure_logging(level=config.log_level, json_output=config.log_json)

    transports = {t: InMemoryKVTransport(namespace_id=f"demo-{t.value}") for t in ResourceType}

    async with AwareKV(config, transports=transports) as kv:
        # --- Microlearning ---------------------------------------------------
        modules = kv.store_for(ResourceType.MICROLEARNING)
        await modules.save_microlearning(
            "phishing-101",
            {
                "microlearning": {
                    "microlearning_metadata": {
                        "title": "Spotting Phishing Emails",
                        "language_availability": ["en-gb"],
                    },
                },
                "language_content": {"scenes": [{"id": 1, "text": "Check the sender."}]},
                "inbox_content": {"emails": [{"subject": "Your parcel is waiting"}]},
            },
            language="en-gb",
            department="finance",
        )

        await modules.store_language_content(
            "phishing-101", "tr", {"scenes": [{"id": 1, "text": "Gondereni kontrol et."}]}
        )
        await modules.update_language_availability_atomic("phishing-101", ["TR"])

        module = await modules.get_microlearning("phishing-101", language="tr")
        print("Languages:", module["base"]["microlearning_metadata"]["language_availability"])

        # Turkish inbox content falls back to the source language.
        inbox = await modules.get_inbox_content("phishing-101", "finance", "tr")
        print("Inbox:", inbox)

        # --- Phishing simulation ---------------------------------------------
        simulations = kv.store_for(ResourceType.PHISHING)
        await simulations.save_phishing(
            "invoice-lure",
            {
                "base": {"name": "Overdue Invoice", "difficulty": "medium"},
                "email": {"subject": "Invoice #4471 overdue", "body": "<p>Pay now</p>"},
                "landing_page": {"html": "<form>...</form>"},
            },
            language="en-gb",
        )
        ready = await kv.wait_for_consistency(
            ResourceType.PHISHING,
            "invoice-lure",
            build_expected_phishing_keys("invoice-lure", "en-gb"),
        )
        print("Simulation readable:", ready)

        # --- Search and health -----------------------------------------------
        hits = await modules.search_microlearnings("phishing")
        print("Search hits:", [hit["microlearning_id"] for hit in hits])

        report = await kv.health(agents={"content-writer": object()}, workflows={})
        print(json.dumps(report.to_document(), indent=2))


if __name__ == "__main__":
    asyncio.run(main())
