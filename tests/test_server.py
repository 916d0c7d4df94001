"""Tests for the results server endpoints."""

import asyncio
import time

import pytest
from fastapi.testclient import TestClient

from datastore_harness import expect
from datastore_harness.server import create_app


def quick_setup():
    def setup(describe, test, get_test_name):
        def failing():
            expect(1).to_equal(2)

        describe(
            "Group",
            lambda: (test("passes", lambda: None), test("fails", failing)),
        )
        test.skip("skipped")

    return setup


def slow_setup():
    async def setup(describe, test, get_test_name):
        async def slow():
            await asyncio.sleep(0.3)

        test("slow", slow)

    return setup


@pytest.fixture
def client():
    return TestClient(create_app(quick_setup))


class TestHealthEndpoint:
    def test_health_returns_status(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "datastore-harness"


class TestRunEndpoint:
    def test_results_before_any_run(self, client):
        response = client.get("/results")

        assert response.status_code == 404
        assert response.json()["status"] == "error"

    def test_run_and_wait_returns_report(self):
        with TestClient(create_app(quick_setup)) as client:
            response = client.post("/run", params={"wait": "true"})

            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "completed"
            report = data["report"]
            assert report["passed"] == 1
            assert report["failed"] == 1
            assert report["skipped"] == ["skipped"]
            assert [r["name"] for r in report["results"]] == [
                "Group > passes",
                "Group > fails",
            ]
            assert report["results"][1]["error"] == "Expected 2, got 1"

            results = client.get("/results")
            assert results.status_code == 200
            assert results.json()["report"] == report

    def test_run_in_background_rejects_concurrent_run(self):
        with TestClient(create_app(slow_setup)) as client:
            started = client.post("/run")
            assert started.status_code == 200
            assert started.json()["status"] == "started"

            conflict = client.post("/run")
            assert conflict.status_code == 409
            assert "already in progress" in conflict.json()["message"]

            deadline = time.monotonic() + 5
            results = client.get("/results")
            while results.status_code == 404 and time.monotonic() < deadline:
                time.sleep(0.05)
                results = client.get("/results")

            assert results.status_code == 200
            assert results.json()["report"]["passed"] == 1

    def test_setup_failure_is_reported(self):
        def broken_factory():
            def setup(describe, test, get_test_name):
                raise RuntimeError("registration broke")

            return setup

        with TestClient(create_app(broken_factory)) as client:
            response = client.post("/run", params={"wait": "true"})

            assert response.status_code == 500
            assert "registration broke" in response.json()["message"]

    def test_background_failure_is_reported_by_results(self):
        def broken_factory():
            async def setup(describe, test, get_test_name):
                await asyncio.sleep(0.05)
                raise RuntimeError("registration broke")

            return setup

        with TestClient(create_app(broken_factory)) as client:
            started = client.post("/run")
            assert started.status_code == 200

            deadline = time.monotonic() + 5
            results = client.get("/results")
            while results.status_code == 404 and time.monotonic() < deadline:
                time.sleep(0.05)
                results = client.get("/results")

            assert results.status_code == 500
            data = results.json()
            assert data["status"] == "error"
            assert data["message"] == "Last run failed: registration broke"
