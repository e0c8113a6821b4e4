"""Tests for core plumbing: input parsing, the error taxonomy, the upstream
client base, counters and the JSON log formatter."""

import asyncio
import json
import logging

import httpx
import pytest

from estate_valuate.core.cache import CounterStore
from estate_valuate.core.config import Settings
from estate_valuate.core.errors import DeadlineExceeded, InvalidParameter, UpstreamError
from estate_valuate.core.http import UpstreamClient
from estate_valuate.core.logging import JsonFormatter
from estate_valuate.core.utils import mask_secret, parse_coordinates, parse_float, round_half_up, to_slug


class TestParsing:
    @pytest.mark.parametrize("value", [None, "", "  ", "abc", "nan", "inf"])
    def test_rejects(self, value):
        with pytest.raises(InvalidParameter):
            parse_float(value, "lat")

    def test_accepts_numeric_strings(self):
        assert parse_float(" 21.5 ", "lat") == 21.5

    def test_coordinate_ranges(self):
        assert parse_coordinates("21", "105") == (21.0, 105.0)
        with pytest.raises(InvalidParameter):
            parse_coordinates("21", "181")

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2

    def test_mask_secret(self):
        assert mask_secret("eyJhbGciOiJIUzI1NiJ9") == "eyJh***NiJ9"
        assert mask_secret("short") == "***"
        assert mask_secret(None) == "***"

    def test_to_slug(self):
        assert to_slug("Hà Nội") == "ha_noi"
        assert to_slug("Thanh Xuân") == "thanh_xuan"
        assert to_slug("Đống Đa") == "dong_da"
        assert to_slug("thanh_xuan") == "thanh_xuan"
        assert to_slug("") == ""


class TestErrors:
    def test_forwarded_uses_upstream_status(self):
        exc = UpstreamError("x", service="s", upstream_status=418)
        assert exc.status_code == 500
        assert exc.forwarded().status_code == 418

    def test_forwarded_without_upstream_status(self):
        exc = DeadlineExceeded("slow", service="s")
        fwd = exc.forwarded()
        assert isinstance(fwd, DeadlineExceeded)
        assert fwd.status_code == 504


class _Sample(UpstreamClient):
    service = "sample"


def _sample(handler):
    return _Sample("https://sample.test", timeout=1.0, transport=httpx.MockTransport(handler))


class TestUpstreamClient:
    def test_timeout_becomes_deadline_exceeded(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(DeadlineExceeded):
            asyncio.run(_sample(handler)._request("GET", "https://sample.test/x"))

    def test_connection_error_is_upstream_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(_sample(handler)._request("GET", "https://sample.test/x"))
        assert exc_info.value.upstream_status is None

    def test_non_json_body(self):
        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(_sample(lambda r: httpx.Response(200, text="<html>"))._json("GET", "https://sample.test/x"))
        assert exc_info.value.forwarded().status_code == 500

    def test_base_url_trailing_slash(self):
        assert _Sample("https://sample.test/").base_url == "https://sample.test"


class TestCounterStore:
    def test_counts_per_key(self):
        store = CounterStore(Settings(USE_REDIS=False, CACHE_TTL_SECONDS=60))
        assert [store.incr("a") for _ in range(3)] == [1, 2, 3]
        assert store.incr("b") == 1
        store.clear()
        assert store.incr("a") == 1


class TestJsonFormatter:
    def test_fields(self):
        record = logging.LogRecord("estate", logging.INFO, __file__, 1, "hello %s", ("Hà Nội",), None)
        record.request_id = "rid-1"
        record.service = "goong"
        line = JsonFormatter().format(record)
        assert "Hà Nội" in line
        data = json.loads(line)
        assert data["msg"] == "hello Hà Nội"
        assert data["request_id"] == "rid-1"
        assert data["service"] == "goong"
        assert "upstream_status" not in data
