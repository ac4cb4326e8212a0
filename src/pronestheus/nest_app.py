"""
Client for the (undocumented) API used by the Nest mobile and web app.

This is the only API that exposes Nest Temperature Sensors. Access works by
replaying the cookies of a signed-in Google account:

1. GET the configured ``issueToken`` URL with those cookies to obtain a
   short-lived Google OAuth access token.
2. Exchange that token for a Nest JWT at the auth proxy.
3. Use the JWT against ``home.nest.com`` until shortly before it expires.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Union

import httpx

from .errors import (
    AuthenticationError,
    ParseError,
    PronestheusError,
    ReauthenticationError,
)
from .http_utils import build_timeout, fetch_json, validate_url
from .json_utils import dig, dig_float, dig_str, parse_rfc3339
from .logging_utils import Logger, get_structured_logger
from .models import Readings, Session, Structure, TemperatureSensor

SOURCE = "nest_app"

ISSUE_JWT_URL = "https://nestauthproxyservice-pa.googleapis.com/v1/issue_jwt"
NEST_API_URL = "https://home.nest.com"

# Renew the session this long before it expires
REFRESH_MARGIN = timedelta(minutes=2)
JWT_LIFETIME = "3600s"
JWT_POLICY_ID = "authproxy-oauth-policy"

APP_LAUNCH_REQUEST = {
    "known_bucket_types": ["structure", "where", "kryptonite"],
    "known_bucket_versions": [],
}


# =============================================================================
# Bucket parsing
# =============================================================================


@dataclass
class StructureBucket:
    id: str
    name: str


@dataclass
class WhereBucket:
    structure_id: str
    where_names: dict[str, str] = field(default_factory=dict)


@dataclass
class SensorBucket:
    id: str
    serial_number: str
    structure_id: str
    where_id: str
    last_updated_at: datetime
    temperature: Optional[float]
    battery_level: int


@dataclass
class UnknownBucket:
    object_key: str


Bucket = Union[StructureBucket, WhereBucket, SensorBucket, UnknownBucket]


def _parse_where_names(value: Any) -> dict[str, str]:
    names: dict[str, str] = {}
    wheres = dig(value, "wheres")
    if not isinstance(wheres, list):
        return names
    for where in wheres:
        where_id = dig(where, "where_id")
        if where_id is not None:
            names[str(where_id)] = dig_str(where, "name")
    return names


_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def _parse_timestamp(seconds: Optional[float]) -> datetime:
    """Unix seconds to UTC, falling back to the epoch when absent or out of range."""
    if seconds is None:
        return _EPOCH
    try:
        return datetime.fromtimestamp(int(seconds), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return _EPOCH


def _parse_sensor(bucket_id: str, value: Any) -> SensorBucket:
    battery = dig_float(value, "battery_level") or 0.0
    return SensorBucket(
        id=bucket_id,
        serial_number=dig_str(value, "serial_number"),
        structure_id=dig_str(value, "structure_id"),
        where_id=dig_str(value, "where_id"),
        last_updated_at=_parse_timestamp(dig_float(value, "last_updated_at")),
        temperature=dig_float(value, "current_temperature"),
        battery_level=int(battery),
    )


def parse_bucket(obj: Any) -> Bucket:
    """
    Decode one element of ``updated_buckets`` into its variant.

    The variant is chosen by the ``{type}.{id}`` prefix of ``object_key``.
    Buckets without a ``value`` object decode as UnknownBucket. A sensor
    that has not reported a temperature is still kept, with temperature None.
    """
    object_key = dig_str(obj, "object_key")
    value = dig(obj, "value")
    bucket_type, _, bucket_id = object_key.partition(".")
    if not isinstance(value, dict) or not bucket_id:
        return UnknownBucket(object_key)

    if bucket_type == "structure":
        return StructureBucket(id=bucket_id, name=dig_str(value, "name"))
    if bucket_type == "where":
        return WhereBucket(structure_id=bucket_id, where_names=_parse_where_names(value))
    if bucket_type == "kryptonite":
        return _parse_sensor(bucket_id, value)
    return UnknownBucket(object_key)


def _apply_outside_temperatures(structures: dict[str, Structure], weather: Any) -> None:
    if not isinstance(weather, dict):
        return
    for key, conditions in weather.items():
        bucket_type, _, structure_id = str(key).partition(".")
        if bucket_type != "structure" or structure_id not in structures:
            continue
        temperature = dig_float(conditions, "current", "temp_c")
        if temperature is not None:
            structures[structure_id].outside_temperature = temperature


def parse_readings(document: Any) -> Readings:
    """
    Build structures and sensors from an ``app_launch`` response.

    Buckets arrive in no particular order. All of them are decoded first,
    then relationships are resolved by id: structures, then their wheres,
    then sensors, then the per-structure weather. The result therefore does
    not depend on the position of any bucket in the array.

    Raises:
        ParseError: If the document has no ``updated_buckets`` array
    """
    raw_buckets = dig(document, "updated_buckets")
    if not isinstance(raw_buckets, list):
        raise ParseError("no 'updated_buckets' array in response", SOURCE)

    buckets = [parse_bucket(obj) for obj in raw_buckets]

    structures: dict[str, Structure] = {}
    for bucket in buckets:
        if isinstance(bucket, StructureBucket):
            structures[bucket.id] = Structure(id=bucket.id, name=bucket.name)

    for bucket in buckets:
        if isinstance(bucket, WhereBucket) and bucket.structure_id in structures:
            structures[bucket.structure_id].where_names.update(bucket.where_names)

    sensors = []
    for bucket in buckets:
        if not isinstance(bucket, SensorBucket):
            continue
        structure = structures.get(bucket.structure_id)
        sensors.append(
            TemperatureSensor(
                serial_number=bucket.serial_number,
                structure_name=structure.name if structure else "",
                where_name=structure.where_names.get(bucket.where_id, "") if structure else "",
                last_updated_at=bucket.last_updated_at,
                temperature=bucket.temperature,
                battery_level=bucket.battery_level,
            )
        )

    _apply_outside_temperatures(structures, dig(document, "weather_for_structures"))

    return Readings(structures=list(structures.values()), sensors=sensors)


# =============================================================================
# Client
# =============================================================================


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NestAppClient:
    """
    Session-holding client for the Nest app API.

    The session is created by ``authenticate()`` and renewed transparently by
    ``fetch_readings()``. Session checks and renewal run under a lock so that
    concurrent scrapes never race to replace it.
    """

    def __init__(
        self,
        auth_url: str,
        auth_cookies: str,
        timeout_ms: int = 5000,
        issue_jwt_url: str = ISSUE_JWT_URL,
        api_url: str = NEST_API_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = _utcnow,
        logger: Optional[Logger] = None,
    ):
        """
        Initialize the Nest app client. No request is made until ``authenticate()``.

        Args:
            auth_url: Google ``issueToken`` URL captured from a signed-in browser
            auth_cookies: Cookie header captured together with auth_url
            timeout_ms: Timeout applied to every request, in milliseconds
            issue_jwt_url: Nest auth proxy endpoint
            api_url: Nest app API base URL
            transport: Optional httpx transport (used by tests)
            clock: Returns the current UTC time
            logger: Logger to use instead of the module default

        Raises:
            ConfigurationError: If one of the URLs is not usable
        """
        self.auth_url = validate_url(auth_url, SOURCE)
        self.issue_jwt_url = validate_url(issue_jwt_url, SOURCE)
        self.api_url = validate_url(api_url, SOURCE).rstrip("/")
        self._auth_cookies = auth_cookies
        self._clock = clock
        self._logger = logger or get_structured_logger(__name__, component=SOURCE)
        self._client = httpx.AsyncClient(timeout=build_timeout(timeout_ms), transport=transport)
        self._session: Optional[Session] = None
        self._lock = asyncio.Lock()

    @property
    def session(self) -> Optional[Session]:
        """Current session, or None before the first successful authentication"""
        return self._session

    async def _fetch_google_access_token(self) -> str:
        document = await fetch_json(
            self._client,
            "GET",
            self.auth_url,
            source=SOURCE,
            check_status=False,
            headers={
                "Cookie": self._auth_cookies,
                "X-Requested-With": "XmlHttpRequest",
            },
        )
        if dig(document, "error") is not None:
            raise ParseError(
                f"{dig_str(document, 'error')}: {dig_str(document, 'error_description')}"
            )

        access_token = dig_str(document, "access_token")
        if not access_token:
            raise ParseError("no access token in the response")
        return access_token

    async def _issue_jwt(self, google_access_token: str) -> Session:
        document = await fetch_json(
            self._client,
            "POST",
            self.issue_jwt_url,
            source=SOURCE,
            check_status=False,
            headers={
                "Authorization": f"Bearer {google_access_token}",
                "X-Requested-With": "XmlHttpRequest",
            },
            json={
                "embed_google_oauth_access_token": True,
                "expire_after": JWT_LIFETIME,
                "google_oauth_access_token": google_access_token,
                "policy_id": JWT_POLICY_ID,
            },
        )
        if dig(document, "error") is not None:
            raise ParseError(
                f"{dig_str(document, 'error')}: {dig_str(document, 'error_description')}"
            )

        jwt = dig_str(document, "jwt")
        if not jwt:
            raise ParseError("no JWT in the response")

        user_id = dig_str(document, "claims", "subject", "nestId", "id")
        if not user_id:
            raise ParseError("no user ID (claims.subject.nestId.id) in the response")

        expiration = dig_str(document, "claims", "expirationTime")
        if not expiration:
            raise ParseError("no token expiration time (claims.expirationTime) in the response")
        try:
            expires_at = parse_rfc3339(expiration)
        except ValueError as e:
            raise ParseError(f"failed to parse token expiration time ({expiration}): {e}") from e

        return Session(token=jwt, user_id=user_id, expires_at=expires_at)

    async def _authenticate(self) -> Session:
        try:
            google_access_token = await self._fetch_google_access_token()
        except PronestheusError as e:
            raise AuthenticationError(f"failed to get Google account access token: {e}", SOURCE) from e

        try:
            session = await self._issue_jwt(google_access_token)
        except PronestheusError as e:
            raise AuthenticationError(f"failed to get Nest access token: {e}", SOURCE) from e

        self._session = session
        self._logger.debug(
            "Obtained new access token for the Nest app API",
            valid_until=session.expires_at.isoformat(),
        )
        return session

    async def authenticate(self) -> Session:
        """
        Run the two-step token exchange and replace the session.

        Raises:
            AuthenticationError: If either step fails
        """
        async with self._lock:
            return await self._authenticate()

    async def ensure_session(self) -> Session:
        """
        Return a usable session, renewing it when it is about to expire.

        A failed renewal is tolerated while the current token is still valid,
        so a flaky auth endpoint does not take the source down early.

        Raises:
            ReauthenticationError: If renewal failed and the token has expired
        """
        async with self._lock:
            session = self._session
            if session is not None and self._clock() < session.expires_at - REFRESH_MARGIN:
                return session

            try:
                return await self._authenticate()
            except AuthenticationError as e:
                if session is None or self._clock() >= session.expires_at:
                    raise ReauthenticationError(
                        f"failed to re-authenticate to Nest API: {e}", SOURCE
                    ) from e
                self._logger.warning(
                    "Re-authentication failed, using current token until it expires",
                    valid_until=session.expires_at.isoformat(),
                    error=str(e),
                )
                return session

    def _data_headers(self, session: Session) -> dict[str, str]:
        return {
            "Authorization": f"Basic {session.token}",
            "Cookie": (
                "G_ENABLED_IDPS=google; eu_cookie_accepted=1; viewer-volume=0.5; "
                f"cztoken={session.token}; user_token={session.token}"
            ),
            "X-nl-user-id": session.user_id,
            "X-nl-protocol-version": "1",
        }

    async def fetch_readings(self) -> Readings:
        """
        Fetch structures and temperature sensors.

        Raises:
            ReauthenticationError, RequestError, UpstreamStatusError,
            BodyReadError, ParseError
        """
        session = await self.ensure_session()
        document = await fetch_json(
            self._client,
            "POST",
            f"{self.api_url}/api/0.1/user/{session.user_id}/app_launch",
            source=SOURCE,
            headers=self._data_headers(session),
            json=APP_LAUNCH_REQUEST,
        )
        return parse_readings(document)

    async def close(self) -> None:
        """Close HTTP client"""
        await self._client.aclose()
