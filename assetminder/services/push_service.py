from typing import Dict, Optional
import json
import logging
import os
import uuid

from firebase_admin import messaging, credentials, initialize_app, _apps  # type: ignore

from assetminder.reminders.config import settings
from assetminder.reminders.errors import SendError

logger = logging.getLogger(__name__)


def _ensure_firebase_initialized() -> None:
    if _apps:
        return

    proj = settings.FCM_PROJECT_ID
    env_gac_json = os.getenv("GOOGLE_APPLICATION_CREDENTIALS_JSON")
    env_gac = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    cfg_val = settings.FCM_CREDENTIALS_JSON

    logger.info(f"🔍 [FCM] Initializing Firebase | project_id={proj}")
    logger.info(
        "🔍 [FCM] Creds sources | REMINDER_FCM_CREDENTIALS_JSON set="
        f"{bool(cfg_val)}, GOOGLE_APPLICATION_CREDENTIALS_JSON set={bool(env_gac_json)}, "
        f"GOOGLE_APPLICATION_CREDENTIALS set={bool(env_gac)}"
    )

    creds_json: Optional[str] = cfg_val or env_gac_json or env_gac
    options = {"projectId": proj} if proj else None

    if creds_json and creds_json.strip().startswith("{"):
        logger.info("🔍 [FCM] Using inline JSON credentials")
        cred = credentials.Certificate(json.loads(creds_json))
        initialize_app(cred, options=options)
    elif creds_json and os.path.exists(creds_json):
        logger.info(f"🔍 [FCM] Using file-based credentials: {creds_json}")
        cred = credentials.Certificate(creds_json)
        initialize_app(cred, options=options)
    elif proj:
        initialize_app(options=options)
    else:
        initialize_app()
    logger.info(f"✅ [FCM] Firebase app initialized. apps={len(_apps)}")


class PushNotificationService:
    def __init__(self):
        _ensure_firebase_initialized()

    def send_push(self, token: str, title: str, body: str, data: Optional[Dict[str, str]] = None) -> bool:
        """Send one push notification to one device token via FCM."""
        # Unique id so iOS does not collapse consecutive reminders
        notification_id = str(uuid.uuid4())
        message = messaging.Message(
            token=token,
            notification=messaging.Notification(title=title, body=body),
            data={**(data or {}), "notification_id": notification_id},
            android=messaging.AndroidConfig(
                notification=messaging.AndroidNotification(
                    icon="ic_notification",
                    color="#4285F4",
                    sound="default",
                ),
            ),
            apns=messaging.APNSConfig(
                headers={
                    "apns-push-type": "alert",
                    "apns-priority": "10",
                    "apns-collapse-id": notification_id,
                },
                payload=messaging.APNSPayload(aps=messaging.Aps(sound="default", badge=1)),
            ),
        )

        try:
            result = messaging.send(message, dry_run=False)
        except Exception as e:
            # firebase_admin raises FirebaseError subclasses and transport errors alike
            logger.warning(f"❌ [FCM] Send failed for token {token[:20]}...: {e!r}")
            raise SendError(f"FCM error: {e}") from e

        logger.info(f"✅ [FCM] Notification sent: {result}")
        return True
