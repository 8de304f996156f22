"""Integration tests for the tier catalog endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from storage_advisor.main import app


class TestCatalogEndpoints:
    """Test suite for /api/v1/catalog."""

    def test_list_tiers_by_class(self, client):
        """Test listing the tiers of one storage class."""
        response = client.get("/api/v1/catalog/tiers", params={"storage_class": "premium_ssd"})

        assert response.status_code == 200
        tier_ids = [t["tier_id"] for t in response.json()]
        assert tier_ids[0] == "P1"
        assert tier_ids[-1] == "P80"
        assert len(tier_ids) == 14
        assert response.json()[0]["can_burst"] is True

    def test_list_all_tiers(self, client):
        """Test that every class is listed without a filter."""
        response = client.get("/api/v1/catalog/tiers")

        classes = {t["storage_class"] for t in response.json()}
        assert classes == {"premium_ssd", "standard_ssd", "standard_hdd", "blob"}

    def test_regions(self, client):
        response = client.get("/api/v1/catalog/regions")

        assert "eastus" in response.json()
        assert response.json() == sorted(response.json())

    def test_tier_price(self, client):
        """Test the regional price of a tier."""
        response = client.get("/api/v1/catalog/tiers/P10/price", params={"region": "eastus"})

        data = response.json()
        assert response.status_code == 200
        assert data["monthly_price"] == 19.71
        assert data["used_fallback"] is False

    def test_tier_price_unknown_region_falls_back(self, client):
        response = client.get("/api/v1/catalog/tiers/S10/price", params={"region": "nowhere"})

        assert response.json()["region"] == "eastus"
        assert response.json()["used_fallback"] is True

    def test_unknown_tier_not_found(self, client):
        response = client.get("/api/v1/catalog/tiers/Q1/price")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_list_tiers_async(self):
        """Test the catalog through an async HTTP client."""
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/api/v1/catalog/tiers", params={"storage_class": "blob"})

        assert response.status_code == 200
        assert [t["tier_id"] for t in response.json()] == ["Hot", "Cool", "Cold", "Archive"]
