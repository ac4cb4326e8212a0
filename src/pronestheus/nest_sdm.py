"""Google Smart Device Management (SDM) API client for Nest thermostats"""

from typing import Any, Optional

import httpx
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client

from .errors import AuthenticationError, MissingFieldError, NoValidDevicesError
from .http_utils import build_timeout, fetch_json, validate_url
from .json_utils import dig, dig_float, dig_str
from .logging_utils import Logger, get_structured_logger
from .models import HvacStatus, Thermostat

SOURCE = "nest"

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
SDM_SCOPE = "https://www.googleapis.com/auth/sdm.service"
THERMOSTAT_TYPE = "sdm.devices.types.THERMOSTAT"
TRAIT_PREFIX = "sdm.devices.traits."


def _trait(device: Any, trait: str) -> Any:
    return dig(device, "traits", TRAIT_PREFIX + trait, default={})


def _room_name(device: Any) -> str:
    """
    Resolve the room from the device's parent relations.

    A thermostat belongs to at most one room, so the first relation whose
    parent path points at a room wins.
    """
    relations = dig(device, "parentRelations")
    if not isinstance(relations, list):
        return ""
    for relation in relations:
        if "/rooms/" in dig_str(relation, "parent"):
            return dig_str(relation, "displayName")
    return ""


def parse_thermostat(device: Any) -> Thermostat:
    """Build a Thermostat from one element of the ``devices`` array."""
    setpoint = _trait(device, "ThermostatTemperatureSetpoint")
    return Thermostat(
        id=dig_str(device, "name"),
        room=_room_name(device),
        label=dig_str(_trait(device, "Info"), "customName"),
        online=dig(_trait(device, "Connectivity"), "status") == "ONLINE",
        ambient_temperature=dig_float(_trait(device, "Temperature"), "ambientTemperatureCelsius"),
        humidity=dig_float(_trait(device, "Humidity"), "ambientHumidityPercent"),
        # Setpoints are absent when the mode does not use them (OFF, COOL, HEAT)
        heat_setpoint=dig_float(setpoint, "heatCelsius"),
        cool_setpoint=dig_float(setpoint, "coolCelsius"),
        hvac_status=HvacStatus.parse(dig_str(_trait(device, "ThermostatHvac"), "status")),
    )


def parse_thermostats(document: Any, require_thermostats: bool = True) -> list[Thermostat]:
    """
    Extract thermostats from a ``devices.list`` response.

    Devices of any other type are skipped.

    Args:
        document: Decoded JSON response
        require_thermostats: Treat an empty result as an error

    Returns:
        One Thermostat per thermostat-typed device

    Raises:
        MissingFieldError: If there is no ``devices`` array
        NoValidDevicesError: If no thermostat was found and one is required
    """
    devices = dig(document, "devices")
    if not isinstance(devices, list):
        raise MissingFieldError("devices", SOURCE)

    thermostats = [
        parse_thermostat(device) for device in devices if dig(device, "type") == THERMOSTAT_TYPE
    ]

    if not thermostats and require_thermostats:
        raise NoValidDevicesError("no valid thermostats in devices list", SOURCE)
    return thermostats


class NestSDMClient:
    """
    Fetches thermostat state from the SDM API.

    Authentication is an OAuth2 refresh token. The access token is obtained
    on first use and renewed by authlib whenever it expires.
    """

    def __init__(
        self,
        api_url: str,
        project_id: str,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        timeout_ms: int = 5000,
        token: Optional[dict[str, Any]] = None,
        token_url: str = GOOGLE_TOKEN_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[Logger] = None,
    ):
        """
        Initialize the SDM client.

        Args:
            api_url: SDM API base URL
            project_id: Device Access project ID
            client_id: OAuth client ID
            client_secret: OAuth client secret
            refresh_token: OAuth refresh token
            timeout_ms: Timeout applied to every request, in milliseconds
            token: Pre-issued token dict; skips the initial refresh round trip
            token_url: OAuth token endpoint
            transport: Optional httpx transport (used by tests)
            logger: Logger to use instead of the module default

        Raises:
            ConfigurationError: If api_url is not a usable URL
        """
        validate_url(api_url, SOURCE)
        self.devices_url = f"{api_url.rstrip('/')}/enterprises/{project_id}/devices/"
        self._token_url = token_url
        self._logger = logger or get_structured_logger(__name__, component=SOURCE)

        if token is None:
            token = {"token_type": "Bearer", "refresh_token": refresh_token}

        client_kwargs: dict[str, Any] = {"timeout": build_timeout(timeout_ms)}
        if transport is not None:
            client_kwargs["transport"] = transport

        self._client = AsyncOAuth2Client(
            client_id=client_id,
            client_secret=client_secret,
            scope=SDM_SCOPE,
            token=token,
            token_endpoint=token_url,
            **client_kwargs,
        )

    async def _ensure_access_token(self) -> None:
        """
        Make sure we hold a valid access token.

        The first call exchanges the refresh token; later calls let authlib
        renew the token once it is about to expire.

        Raises:
            AuthenticationError: If the token endpoint rejects the refresh
        """
        token = self._client.token
        try:
            if token and token.get("access_token"):
                await self._client.ensure_active_token(token)
                return
            await self._client.refresh_token(self._token_url)
        except (OAuthError, httpx.HTTPError, ValueError) as e:
            raise AuthenticationError(f"failed refreshing OAuth access token: {e}", SOURCE) from e
        self._logger.debug("Obtained OAuth access token for SDM API")

    async def fetch_devices(self) -> Any:
        """Fetch the raw ``devices`` document for the project."""
        await self._ensure_access_token()
        return await fetch_json(
            self._client,
            "GET",
            self.devices_url,
            source=SOURCE,
            auth=self._client.token_auth,
        )

    async def fetch_thermostats(self, require_thermostats: bool = True) -> list[Thermostat]:
        """
        Fetch and parse all thermostats.

        Raises:
            RequestError, UpstreamStatusError, BodyReadError, ParseError,
            NoValidDevicesError, AuthenticationError
        """
        document = await self.fetch_devices()
        return parse_thermostats(document, require_thermostats=require_thermostats)

    async def close(self) -> None:
        """Close HTTP client"""
        await self._client.aclose()
