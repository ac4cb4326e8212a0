"""Tests for the Smart Device Management client."""

import httpx
import pytest

from pronestheus.errors import (
    AuthenticationError,
    BodyReadError,
    ConfigurationError,
    MissingFieldError,
    NoValidDevicesError,
    ParseError,
    RequestError,
    UpstreamStatusError,
)
from pronestheus.models import HvacStatus
from pronestheus.nest_sdm import NestSDMClient, parse_thermostats

API_URL = "https://sdm.example.com/v1"
DEVICES_URL = "https://sdm.example.com/v1/enterprises/project-1/devices/"
TOKEN_URL = "https://oauth.example.com/token"


def make_thermostat(
    name: str = "enterprises/project-1/devices/therm-1",
    label: str = "Living Room",
    online: bool = True,
    heat: float | None = 20.5,
    cool: float | None = None,
    status: str = "HEATING",
    room: str = "Lounge",
) -> dict:
    setpoint = {}
    if heat is not None:
        setpoint["heatCelsius"] = heat
    if cool is not None:
        setpoint["coolCelsius"] = cool
    return {
        "name": name,
        "type": "sdm.devices.types.THERMOSTAT",
        "traits": {
            "sdm.devices.traits.Info": {"customName": label},
            "sdm.devices.traits.Connectivity": {"status": "ONLINE" if online else "OFFLINE"},
            "sdm.devices.traits.Temperature": {"ambientTemperatureCelsius": 19.25},
            "sdm.devices.traits.Humidity": {"ambientHumidityPercent": 48},
            "sdm.devices.traits.ThermostatTemperatureSetpoint": setpoint,
            "sdm.devices.traits.ThermostatHvac": {"status": status},
        },
        "parentRelations": [
            {"parent": "enterprises/project-1/structures/s1", "displayName": "Home"},
            {"parent": "enterprises/project-1/structures/s1/rooms/r1", "displayName": room},
        ],
    }


CAMERA = {"name": "enterprises/project-1/devices/cam-1", "type": "sdm.devices.types.CAMERA"}


def make_client(handler, token: dict | None = None, **kwargs) -> NestSDMClient:
    if token is None:
        token = {"access_token": "test-token", "token_type": "Bearer"}
    return NestSDMClient(
        api_url=API_URL,
        project_id="project-1",
        client_id="client-id",
        client_secret="client-secret",
        refresh_token="refresh-token",
        token=token,
        token_url=TOKEN_URL,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestParseThermostats:
    def test_extracts_fields(self):
        thermostats = parse_thermostats({"devices": [make_thermostat()]})

        assert len(thermostats) == 1
        therm = thermostats[0]
        assert therm.id == "enterprises/project-1/devices/therm-1"
        assert therm.label == "Living Room"
        assert therm.room == "Lounge"
        assert therm.online is True
        assert therm.ambient_temperature == 19.25
        assert therm.humidity == 48.0
        assert therm.heat_setpoint == 20.5
        assert therm.cool_setpoint is None
        assert therm.hvac_status is HvacStatus.HEATING
        assert therm.is_heating
        assert not therm.is_cooling

    def test_missing_heat_setpoint_is_none(self):
        thermostats = parse_thermostats(
            {"devices": [make_thermostat(heat=None, cool=24.0, status="COOLING")]}
        )

        therm = thermostats[0]
        assert therm.heat_setpoint is None
        assert therm.cool_setpoint == 24.0
        assert therm.is_cooling

    def test_skips_non_thermostats(self):
        thermostats = parse_thermostats(
            {"devices": [CAMERA, make_thermostat(), make_thermostat(name="therm-2")]}
        )
        assert [t.id for t in thermostats] == [
            "enterprises/project-1/devices/therm-1",
            "therm-2",
        ]

    def test_no_room_relation(self):
        device = make_thermostat()
        device["parentRelations"] = [
            {"parent": "enterprises/project-1/structures/s1", "displayName": "Home"}
        ]
        assert parse_thermostats({"devices": [device]})[0].room == ""

    def test_unknown_hvac_status(self):
        thermostats = parse_thermostats({"devices": [make_thermostat(status="FAN")]})
        assert thermostats[0].hvac_status is HvacStatus.UNKNOWN

    def test_no_thermostats_is_error(self):
        with pytest.raises(NoValidDevicesError):
            parse_thermostats({"devices": [CAMERA]})

    def test_no_thermostats_allowed_when_not_required(self):
        assert parse_thermostats({"devices": [CAMERA]}, require_thermostats=False) == []

    def test_missing_devices_array(self):
        with pytest.raises(MissingFieldError):
            parse_thermostats({"error": "nope"})


class TestNestSDMClient:
    def test_devices_url(self):
        client = make_client(lambda request: httpx.Response(200))
        assert client.devices_url == DEVICES_URL

    def test_trailing_slash_stripped(self):
        client = NestSDMClient(API_URL + "/", "project-1", "id", "secret", "refresh")
        assert client.devices_url == DEVICES_URL

    def test_invalid_url(self):
        with pytest.raises(ConfigurationError):
            NestSDMClient("not a url", "project-1", "id", "secret", "refresh")

    @pytest.mark.asyncio
    async def test_fetch_with_injected_token(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"devices": [make_thermostat()]})

        client = make_client(handler)
        try:
            thermostats = await client.fetch_thermostats()
        finally:
            await client.close()

        assert len(thermostats) == 1
        assert len(seen) == 1
        assert str(seen[0].url) == DEVICES_URL
        assert seen[0].headers["Authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    async def test_refresh_token_exchanged_before_first_request(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            if str(request.url) == TOKEN_URL:
                return httpx.Response(
                    200,
                    json={"access_token": "fresh-token", "token_type": "Bearer", "expires_in": 3600},
                )
            assert request.headers["Authorization"] == "Bearer fresh-token"
            return httpx.Response(200, json={"devices": [make_thermostat()]})

        client = make_client(handler, token={"token_type": "Bearer", "refresh_token": "refresh"})
        try:
            await client.fetch_thermostats()
            await client.fetch_thermostats()
        finally:
            await client.close()

        # Token exchanged once, then reused
        assert seen == [TOKEN_URL, DEVICES_URL, DEVICES_URL]

    @pytest.mark.asyncio
    async def test_refresh_rejected(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_grant"})

        client = make_client(handler, token={"token_type": "Bearer", "refresh_token": "refresh"})
        try:
            with pytest.raises(AuthenticationError):
                await client.fetch_thermostats()
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_non_200(self):
        client = make_client(lambda request: httpx.Response(503, text="unavailable"))
        try:
            with pytest.raises(UpstreamStatusError) as exc_info:
                await client.fetch_thermostats()
        finally:
            await client.close()
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        try:
            with pytest.raises(RequestError):
                await client.fetch_thermostats()
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_body_read_failure(self):
        class BrokenStream(httpx.AsyncByteStream):
            async def __aiter__(self):
                yield b'{"devices": '
                raise httpx.ReadError("connection reset")

        client = make_client(lambda request: httpx.Response(200, stream=BrokenStream()))
        try:
            with pytest.raises(BodyReadError):
                await client.fetch_thermostats()
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>"))
        try:
            with pytest.raises(ParseError):
                await client.fetch_thermostats()
        finally:
            await client.close()
