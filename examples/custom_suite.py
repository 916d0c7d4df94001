#!/usr/bin/env python3
"""
Example custom suite for the DataStore harness.

This shows how to register your own tests with describe()/test() and run
them against the in-memory store, alongside or instead of the built-in
DataStore suite.

Usage:
    pip install datastore-harness
    python custom_suite.py
"""

import asyncio
import logging
import sys

from datastore_harness import (
    Post,
    ResultReporter,
    expect,
    make_id,
    run_tests,
    wait_for_observe,
)
from datastore_harness.logging_config import setup_logging
from datastore_harness.testing import MemoryDataStore

logger = logging.getLogger(__name__)


def make_setup(store: MemoryDataStore):
    async def setup(describe, test, get_test_name):
        await store.clear()

        def posts():
            async def can_save_and_query():
                saved = await store.save(Post(post_id=make_id(), title=get_test_name()))
                retrieved = await store.query(Post, saved)
                expect(retrieved).to_be_defined()
                expect(retrieved.title).to_equal(saved.title)

            async def can_observe_insert():
                pending = wait_for_observe(store, Post, timeout=2)
                await store.save(Post(post_id=make_id(), title=get_test_name()))
                events = await pending
                expect(events[0].op_type).to_equal("INSERT")

            test("can save and query a post", can_save_and_query)
            test("can observe a post insert", can_observe_insert)
            test.skip("can sync a post to the cloud")

        describe("Posts", posts)

    return setup


async def main() -> int:
    reporter = ResultReporter()
    reporter.add_listener(
        lambda outcome: logger.info("%s: %s", outcome.outcome.value, outcome.name)
    )
    report = await run_tests(make_setup(MemoryDataStore()), reporter=reporter)
    print(reporter.render())
    return 0 if report.ok else 1


if __name__ == "__main__":
    setup_logging(stream=sys.stderr)
    sys.exit(asyncio.run(main()))
