"""Push provider adapter for Firebase Cloud Messaging."""
import json
import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from firebase_admin import messaging, credentials, initialize_app, _apps  # type: ignore
from firebase_admin import exceptions as firebase_exceptions  # type: ignore

from expiry_tracker.core.exceptions import DeliveryError
from .config import settings

logger = logging.getLogger(__name__)


@dataclass
class MulticastResult:
    success_count: int
    failure_count: int
    invalid_tokens: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def _ensure_firebase_initialized() -> bool:
    if _apps:
        return True

    proj = settings.FCM_PROJECT_ID
    env_gac_json = os.getenv("GOOGLE_APPLICATION_CREDENTIALS_JSON")
    env_gac = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    creds_json: Optional[str] = settings.FCM_CREDENTIALS_JSON or env_gac_json or env_gac
    options = {"projectId": proj} if proj else None

    logger.info(
        f"[FCM] Initializing Firebase | project_id={proj} "
        f"REMINDER_FCM_CREDENTIALS_JSON set={bool(settings.FCM_CREDENTIALS_JSON)}, "
        f"GOOGLE_APPLICATION_CREDENTIALS_JSON set={bool(env_gac_json)}, "
        f"GOOGLE_APPLICATION_CREDENTIALS set={bool(env_gac)}"
    )

    if not creds_json or creds_json.strip() == "":
        logger.warning("[FCM] No credentials provided - push notifications are disabled")
        return False

    try:
        if creds_json.strip().startswith("{"):
            cred = credentials.Certificate(json.loads(creds_json))
            initialize_app(cred, options=options)
        elif os.path.exists(creds_json):
            initialize_app(credentials.Certificate(creds_json), options=options)
        else:
            logger.warning(f"[FCM] Credentials file not found: {creds_json}")
            return False
    except (ValueError, IOError) as e:
        logger.error(f"[FCM] Failed to initialize Firebase: {e!r}")
        return False
    logger.info(f"[FCM] Firebase app initialized. apps={len(_apps)}")
    return True


def _is_unregistered(exc: Optional[Exception]) -> bool:
    return isinstance(exc, (messaging.UnregisteredError, messaging.SenderIdMismatchError))


def _string_data(data: Optional[Dict[str, object]]) -> Dict[str, str]:
    # FCM data values must be strings
    return {str(k): "" if v is None else str(v) for k, v in (data or {}).items()}


class FirebasePushProvider:
    def _message_parts(self, title: str, body: str, data: Optional[Dict[str, object]]):
        # Unique collapse id keeps iOS from merging similar notifications
        notification_id = str(uuid.uuid4())
        payload = _string_data(data)
        payload["notification_id"] = notification_id
        apns = messaging.APNSConfig(
            headers={
                "apns-push-type": "alert",
                "apns-priority": "10",
                "apns-collapse-id": notification_id,
            }
        )
        return messaging.Notification(title=title, body=body), payload, apns

    def _require_app(self) -> None:
        if not _ensure_firebase_initialized():
            raise DeliveryError("push provider is not configured")

    def send_to_one(self, token: str, title: str, body: str, data: Optional[Dict[str, object]] = None) -> str:
        self._require_app()
        notification, payload, apns = self._message_parts(title, body, data)
        message = messaging.Message(token=token, notification=notification, data=payload, apns=apns)
        try:
            message_id = messaging.send(message)
        except firebase_exceptions.FirebaseError as e:
            raise DeliveryError(str(e), invalid_tokens=[token] if _is_unregistered(e) else []) from e
        logger.info(f"[FCM] Sent to {token[:20]}... id={message_id}")
        return message_id

    def send_to_many(
        self, tokens: Sequence[str], title: str, body: str, data: Optional[Dict[str, object]] = None
    ) -> MulticastResult:
        self._require_app()
        notification, payload, apns = self._message_parts(title, body, data)
        message = messaging.MulticastMessage(tokens=list(tokens), notification=notification, data=payload, apns=apns)
        try:
            response = messaging.send_each_for_multicast(message)
        except firebase_exceptions.FirebaseError as e:
            raise DeliveryError(str(e)) from e

        result = MulticastResult(success_count=response.success_count, failure_count=response.failure_count)
        for token, resp in zip(tokens, response.responses):
            if resp.success:
                continue
            result.errors.append(str(resp.exception))
            if _is_unregistered(resp.exception):
                result.invalid_tokens.append(token)
        logger.info(
            f"[FCM] Multicast to {len(tokens)} token(s): success={result.success_count} failure={result.failure_count}"
        )
        return result


_push_provider: Optional[FirebasePushProvider] = None


def get_push_provider() -> FirebasePushProvider:
    global _push_provider
    if _push_provider is None:
        _push_provider = FirebasePushProvider()
    return _push_provider
