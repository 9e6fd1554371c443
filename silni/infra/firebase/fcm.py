# silni/infra/firebase/fcm.py
# FCM HTTP v1: service-account bearer tokens and per-device sends
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

import requests
from firebase_admin import credentials

from silni.infra.clock import to_naive_utc, utcnow
from silni.infra.config import settings

logger = logging.getLogger(__name__)

DEFAULT_SOUND = "default"


class PushAuthError(RuntimeError):
    pass


@dataclass
class SendOutcome:
    ok: bool
    status_code: Optional[int] = None
    message_id: Optional[str] = None
    error: Optional[str] = None
    unregistered: bool = False


def load_credential():
    """Service account from FIREBASE_SERVICE_ACCOUNT (inline JSON) or FIREBASE_CREDENTIAL_PATH."""
    try:
        if settings.FIREBASE_SERVICE_ACCOUNT:
            return credentials.Certificate(json.loads(settings.FIREBASE_SERVICE_ACCOUNT))
        if settings.FIREBASE_CREDENTIAL_PATH:
            return credentials.Certificate(settings.FIREBASE_CREDENTIAL_PATH)
    except (ValueError, IOError) as e:
        raise PushAuthError(f"Invalid Firebase service account: {e}") from e
    raise PushAuthError("Firebase service account not configured")


class FirebaseTokenProvider:
    """Exchanges the service account's signed JWT for a short-lived OAuth bearer token.

    The token (valid about an hour) is cached and only re-minted shortly before
    it expires, so one dispatch batch authenticates once.
    """
    REFRESH_MARGIN = timedelta(minutes=5)

    def __init__(self, credential):
        self._credential = credential
        self._token = None
        self._expiry = None

    @property
    def project_id(self) -> str:
        return self._credential.project_id

    def get_token(self) -> str:
        if self._token and self._expiry and utcnow() < self._expiry - self.REFRESH_MARGIN:
            return self._token

        try:
            info = self._credential.get_access_token()
        except Exception as e:
            raise PushAuthError(f"Firebase credential exchange failed: {e}") from e

        if not info or not info.access_token:
            raise PushAuthError("Firebase credential exchange returned no access token")

        self._token = info.access_token
        self._expiry = to_naive_utc(info.expiry) if isinstance(info.expiry, datetime) else utcnow() + timedelta(hours=1)
        logger.info(f"Minted FCM access token, expires at {self._expiry.isoformat()}Z")
        return self._token


def build_fcm_message(token: str, platform: str, title: str, body: str, data: Dict[str, str],
                      channel_id: str = None, badge: int = None) -> dict:
    message = {
        "token": token,
        "notification": {"title": title, "body": body},
        "data": data,
    }
    if platform == "ios":
        aps = {"alert": {"title": title, "body": body}, "sound": DEFAULT_SOUND}
        if badge is not None:
            aps["badge"] = badge
        message["apns"] = {"payload": {"aps": aps}}
    else:
        message["android"] = {
            "priority": "high",
            "notification": {
                "sound": DEFAULT_SOUND,
                "channel_id": channel_id or settings.ANDROID_CHANNEL_ID,
            },
        }
    return message


def is_unregistered_response(status_code: int, text: str) -> bool:
    if status_code == 404:
        return True
    lowered = (text or "").lower()
    return (
        "unregistered" in lowered
        or "registration-token-not-registered" in lowered
        or "invalid registration token" in lowered
        or "requested entity was not found" in lowered
    )


class FcmHttpSender:
    def __init__(self, project_id: str, session: requests.Session = None, timeout: float = None, url_template: str = None):
        self.project_id = project_id
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.PUSH_SEND_TIMEOUT
        self.url = (url_template or settings.FCM_SEND_URL).format(project_id=project_id)

    def send(self, message: dict, access_token: str) -> SendOutcome:
        try:
            response = self.session.post(
                self.url,
                json={"message": message},
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            return SendOutcome(ok=False, error=str(e))

        if response.ok:
            try:
                message_id = response.json().get("name")
            except ValueError:
                message_id = None
            return SendOutcome(ok=True, status_code=response.status_code, message_id=message_id)

        text = response.text
        return SendOutcome(
            ok=False,
            status_code=response.status_code,
            error=text[:500],
            unregistered=is_unregistered_response(response.status_code, text),
        )


class PushGateway:
    """Sender plus token provider; the pair every dispatch batch needs."""

    def __init__(self, sender, token_provider):
        self.sender = sender
        self.token_provider = token_provider

    @classmethod
    def from_settings(cls):
        provider = FirebaseTokenProvider(load_credential())
        return cls(FcmHttpSender(provider.project_id), provider)
