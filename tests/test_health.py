"""Smoke tests for the service root endpoints."""

from fastapi import status


def test_health_check(client) -> None:
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_root_describes_service(client) -> None:
    data = client.get("/").json()
    assert data["name"] == "League Chat"
    assert data["live_backend"] == "memory"
