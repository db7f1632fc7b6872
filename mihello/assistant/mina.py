"""Async client helpers for the Xiaomi account and MiNA speaker APIs."""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import random
import string
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx

from .models import ConversationPage, PlayStatus

LOGGER = logging.getLogger("mihello-assistant.mina")

MINA_SID = "micoapi"
ACCOUNT_BASE_URL = "https://account.xiaomi.com/pass/"
MINA_BASE_URL = "https://api2.mina.mi.com"
CONVERSATION_URL = "https://userprofile.mina.mi.com/device_profile/v2/conversation"
CONVERSATION_LIMIT = 2

ACCOUNT_USER_AGENT = "APP/com.xiaomi.mihome APPV/6.0.103 iosPassportSDK/3.9.0 iOS/14.4 miHSTS"
MINA_USER_AGENT = (
    "MiHome/6.0.103 (com.xiaomi.mihome; build:6.0.103.1; iOS 14.4.0) Alamofire/6.0.103 MICO/iOSApp/appStore/6.0.103"
)
_ACCOUNT_RESPONSE_PREFIX = "&&&START&&&"


class MiServiceError(RuntimeError):
    """Generic speaker API failure."""


class TransportError(MiServiceError):
    """Raised when the request never produced a response (network, timeout)."""


class RemoteError(MiServiceError):
    """Raised when the API answers with a non-success code."""

    def __init__(self, message: str, code: Any = None) -> None:
        super().__init__(message)
        self.code = code


class MalformedDataError(MiServiceError):
    """Raised when a payload cannot be parsed."""


class FatalAuthError(MiServiceError):
    """Raised when the Xiaomi account login fails."""


def _random_string(length: int) -> str:
    return "".join(random.choices(string.ascii_letters + string.digits, k=length))


def _cookie_header(cookies: dict[str, Any]) -> str:
    return "; ".join(f"{key}={value}" for key, value in cookies.items() if value is not None)


@dataclass(slots=True)
class MiTokenStore:
    """JSON file holding the account token between runs."""

    path: Path

    def load(self) -> dict[str, Any] | None:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            LOGGER.warning("[mina] Ignoring unreadable token file %s: %s", self.path, exc)
            return None
        return payload if isinstance(payload, dict) else None

    def save(self, token: dict[str, Any] | None) -> None:
        if token is None:
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(token, indent=2), encoding="utf-8")


class MiAccount:
    """Xiaomi passport login and authenticated requests for one service id."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        user: str,
        password: str,
        token_store: MiTokenStore | None = None,
    ) -> None:
        self._client = client
        self.user = user
        self.password = password
        self.token_store = token_store
        self.token: dict[str, Any] | None = token_store.load() if token_store else None

    async def login(self, sid: str = MINA_SID) -> None:
        if not self.token:
            self.token = {"deviceId": _random_string(16).upper()}
        try:
            resp = await self._service_login(f"serviceLogin?sid={sid}&_json=true")
            if resp.get("code") != 0:
                data = {
                    "_json": "true",
                    "qs": resp["qs"],
                    "sid": resp["sid"],
                    "_sign": resp["_sign"],
                    "callback": resp["callback"],
                    "user": self.user,
                    "hash": hashlib.md5(self.password.encode()).hexdigest().upper(),
                }
                resp = await self._service_login("serviceLoginAuth2", data)
                if resp.get("code") != 0:
                    raise FatalAuthError(f"Xiaomi login rejected: {resp.get('desc') or resp.get('code')}")
            self.token["userId"] = resp["userId"]
            self.token["passToken"] = resp["passToken"]
            service_token = await self._security_token_service(resp["location"], resp["nonce"], resp["ssecurity"])
        except FatalAuthError:
            self._forget_token()
            raise
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            self._forget_token()
            raise FatalAuthError(f"Xiaomi login failed: {exc}") from exc
        self.token[sid] = [resp["ssecurity"], service_token]
        if self.token_store:
            self.token_store.save(self.token)
        LOGGER.info("[mina] Logged in as %s", self.token["userId"])

    async def request(
        self,
        sid: str,
        url: str,
        *,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        cookies: dict[str, Any] | None = None,
        relogin: bool = True,
    ) -> httpx.Response:
        if not self.token or sid not in self.token:
            await self.login(sid)
        token = self.token or {}
        merged_cookies = {"userId": token.get("userId"), "serviceToken": token[sid][1], **(cookies or {})}
        request_headers = {**(headers or {}), "Cookie": _cookie_header(merged_cookies)}
        method = "GET" if data is None else "POST"
        try:
            response = await self._client.request(method, url, data=data, params=params, headers=request_headers)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Timed out contacting {url}") from exc
        except httpx.RequestError as exc:
            raise TransportError(f"Failed to contact {url}: {exc}") from exc
        if response.status_code == 401 and relogin:
            LOGGER.info("[mina] Service token expired; logging in again")
            await self.login(sid)
            return await self.request(
                sid, url, data=data, params=params, headers=headers, cookies=cookies, relogin=False
            )
        if response.status_code >= 400:
            raise RemoteError(f"HTTP {response.status_code}: {response.text}", code=response.status_code)
        return response

    def _forget_token(self) -> None:
        self.token = None
        if self.token_store:
            self.token_store.save(None)

    async def _service_login(self, uri: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        token = self.token or {}
        cookies: dict[str, Any] = {"sdkVersion": "3.9", "deviceId": token.get("deviceId")}
        if "passToken" in token:
            cookies["userId"] = token.get("userId")
            cookies["passToken"] = token.get("passToken")
        headers = {"User-Agent": ACCOUNT_USER_AGENT, "Cookie": _cookie_header(cookies)}
        method = "GET" if data is None else "POST"
        response = await self._client.request(method, ACCOUNT_BASE_URL + uri, data=data, headers=headers)
        text = response.text
        if text.startswith(_ACCOUNT_RESPONSE_PREFIX):
            text = text[len(_ACCOUNT_RESPONSE_PREFIX) :]
        payload = json.loads(text)
        if not isinstance(payload, dict):
            raise ValueError("unexpected login payload")
        return payload

    async def _security_token_service(self, location: str, nonce: Any, ssecurity: str) -> str:
        nsec = f"nonce={nonce}&{ssecurity}"
        client_sign = base64.b64encode(hashlib.sha1(nsec.encode()).digest()).decode()
        response = await self._client.get(f"{location}&clientSign={quote(client_sign)}")
        service_token = response.cookies.get("serviceToken")
        if not service_token:
            raise FatalAuthError("Xiaomi login did not return a service token")
        return service_token


class MiNAClient:
    """Speaker-level operations over the MiNA cloud API."""

    def __init__(self, account: MiAccount) -> None:
        self.account = account

    async def list_devices(self, master: int = 0) -> list[dict[str, Any]]:
        data = await self._mina_request(f"/admin/v2/device_list?master={master}")
        if isinstance(data, list):
            return [item for item in data if isinstance(item, dict)]
        return []

    async def fetch_conversation(
        self, hardware: str, device_id: str, *, limit: int = CONVERSATION_LIMIT
    ) -> ConversationPage:
        params = {
            "source": "dialogu",
            "hardware": hardware,
            "timestamp": str(int(time.time() * 1000)),
            "limit": str(limit),
        }
        response = await self.account.request(MINA_SID, CONVERSATION_URL, params=params, cookies={"deviceId": device_id})
        body = _decode_json(response)
        code = body.get("code")
        if code != 0:
            raise RemoteError(f"Conversation API returned code {code}: {body.get('message')}", code=code)
        try:
            payload = json.loads(body.get("data") or "")
            if not isinstance(payload, dict):
                raise ValueError("conversation data must be an object")
            return ConversationPage.from_payload(
                payload,
                rate_limit_remaining=_parse_rate_limit(response.headers.get("x-rate-limit-remaining")),
            )
        except (TypeError, ValueError) as exc:
            raise MalformedDataError(f"Unparseable conversation data: {exc}") from exc

    async def fetch_play_status(self, device_id: str) -> PlayStatus:
        data = await self.ubus_request(device_id, "player_get_play_status", "mediaplayer", {"media": "app_ios"})
        info = data.get("info") if isinstance(data, dict) else None
        try:
            return PlayStatus.from_info(info)
        except (TypeError, ValueError) as exc:
            raise MalformedDataError(f"Unparseable play status: {exc}") from exc

    async def pause(self, device_id: str) -> Any:
        return await self.ubus_request(
            device_id, "player_play_operation", "mediaplayer", {"action": "pause", "media": "app_ios"}
        )

    async def speak(self, device_id: str, text: str) -> Any:
        return await self.ubus_request(device_id, "text_to_speech", "mibrain", {"text": text})

    async def play_url(self, device_id: str, url: str) -> Any:
        return await self.ubus_request(
            device_id, "player_play_url", "mediaplayer", {"url": url, "type": 1, "media": "app_ios"}
        )

    async def ubus_request(self, device_id: str, method: str, path: str, message: dict[str, Any]) -> Any:
        payload = {
            "deviceId": device_id,
            "message": json.dumps(message, ensure_ascii=False),
            "method": method,
            "path": path,
        }
        return await self._mina_request("/remote/ubus", payload)

    async def _mina_request(self, uri: str, data: dict[str, Any] | None = None) -> Any:
        request_id = "app_ios_" + _random_string(30)
        if data is not None:
            data = {**data, "requestId": request_id}
        else:
            uri += ("&" if "?" in uri else "?") + f"requestId={request_id}"
        response = await self.account.request(
            MINA_SID, MINA_BASE_URL + uri, data=data, headers={"User-Agent": MINA_USER_AGENT}
        )
        body = _decode_json(response)
        code = body.get("code")
        if code != 0:
            raise RemoteError(f"MiNA {uri.split('?')[0]} returned code {code}: {body.get('message')}", code=code)
        return body.get("data")


def _decode_json(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError as exc:
        raise MalformedDataError(f"Response is not JSON: {exc}") from exc
    if not isinstance(body, dict):
        raise MalformedDataError("Response JSON is not an object")
    return body


def _parse_rate_limit(value: str | None) -> int:
    try:
        return max(0, int(value)) if value is not None else 0
    except (TypeError, ValueError):
        return 0
