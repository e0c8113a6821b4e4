"""Unit tests for data/geocode_client.py: keyword normalisation and the
reverse-geocoding / location clients."""

import asyncio

import httpx
import pytest

from estate_valuate.core.errors import NoResults, UpstreamError
from estate_valuate.data.base import GeoPoint
from estate_valuate.data.geocode_client import (
    NO_ADDRESS,
    GoongGeocode,
    RestaLocation,
    normalize_keyword,
    parse_location,
)

POINT = GeoPoint(lat=21.0031, lng=105.8201)


def _goong(handler):
    return GoongGeocode("https://goong.test", "key", transport=httpx.MockTransport(handler))


# =========================================================================
# normalize_keyword
# =========================================================================

class TestNormalizeKeyword:
    def test_long_address_keeps_street_and_drops_admin_prefixes(self):
        kw = normalize_keyword("12 Đ. Lê Văn Lương, Phường Nhân Chính, Quận Thanh Xuân, Hà Nội")
        assert kw == "Lê Văn Lương, Nhân Chính, Thanh Xuân, Hà Nội"

    def test_short_address_uses_formatted_address(self):
        kw = normalize_keyword("Nhân Chính, Hà Nội", "5 Phường Nhân Chính, Quận Thanh Xuân, Hà Nội")
        assert kw == "Nhân Chính, Thanh Xuân, Hà Nội"

    def test_short_address_without_formatted_is_na(self):
        assert normalize_keyword("Thanh Xuân, Hà Nội") == NO_ADDRESS

    def test_missing_address_is_na(self):
        assert normalize_keyword(None) == NO_ADDRESS
        assert normalize_keyword("") == NO_ADDRESS

    def test_separators_are_normalised(self):
        kw = normalize_keyword("Đường Láng ,Phường Láng Thượng ,  Quận Đống Đa,Hà Nội")
        assert ", ," not in kw
        assert kw.startswith("Láng, ")


# =========================================================================
# Goong reverse geocoding
# =========================================================================

class TestGoongReverse:
    def test_first_result_becomes_keyword(self):
        def handler(request):
            assert request.url.params["latlng"] == "21.0031,105.8201"
            return httpx.Response(200, json={"status": "OK", "results": [
                {"address": "12 Đ. Lê Văn Lương, Phường Nhân Chính, Quận Thanh Xuân, Hà Nội"},
                {"address": "ignored"},
            ]})

        kw = asyncio.run(_goong(handler).reverse_keyword(POINT))
        assert kw == "Lê Văn Lương, Nhân Chính, Thanh Xuân, Hà Nội"

    def test_empty_results_raise_no_results(self):
        handler = lambda r: httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})
        with pytest.raises(NoResults):
            asyncio.run(_goong(handler).reverse_keyword(POINT))

    def test_error_status_raises_upstream_error(self):
        handler = lambda r: httpx.Response(200, json={"status": "REQUEST_DENIED"})
        with pytest.raises(UpstreamError):
            asyncio.run(_goong(handler).reverse_keyword(POINT))

    @pytest.mark.parametrize("body", [[], "OK", 42])
    def test_non_object_body_raises_upstream_error(self, body):
        handler = lambda r: httpx.Response(200, json=body)
        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(_goong(handler).reverse_keyword(POINT))
        assert exc_info.value.service == "goong"

    def test_http_failure_keeps_upstream_status(self):
        handler = lambda r: httpx.Response(403, text="forbidden")
        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(_goong(handler).reverse_keyword(POINT))
        assert exc_info.value.upstream_status == 403
        assert exc_info.value.forwarded().status_code == 403


# =========================================================================
# Resta location
# =========================================================================

class TestLocation:
    def test_parse_location_reads_compact_keys(self):
        parsed = parse_location({"features": [{
            "c": "Hà Nội", "d": "Thanh Xuân", "w": "Nhân Chính",
            "dt": "Nhân Chính, Thanh Xuân, Hà Nội", "g": [105.82, 21.0],
        }]})
        assert parsed.city == "Hà Nội"
        assert parsed.ward == "Nhân Chính"
        assert parsed.coordinates == [105.82, 21.0]
        assert parsed.polygon == []

    def test_no_features_is_404(self):
        with pytest.raises(NoResults) as exc_info:
            parse_location({"features": []})
        assert exc_info.value.status_code == 404

    def test_resolve_returns_raw_and_parsed(self):
        body = {"features": [{"c": "Hà Nội", "d": "Cầu Giấy", "w": "Dịch Vọng", "dt": "x"}]}
        client = RestaLocation("https://resta.test", transport=httpx.MockTransport(
            lambda r: httpx.Response(200, json=body)
        ))
        raw, parsed = asyncio.run(client.resolve(POINT))
        assert raw == body
        assert parsed.district == "Cầu Giấy"
