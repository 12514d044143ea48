"""
SugarStatus — Discord user settings client.

Sets the custom status of a Discord user account through the (undocumented)
settings-proto endpoint. The endpoint takes a base64-encoded protobuf
PreloadedUserSettings message; only the custom status part is sent.

Automating a user account is against Discord's ToS. Use at your own risk.
"""

import base64
import logging
import time
from typing import Optional

import requests
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

logger = logging.getLogger("sugarstatus.discord")

PROTO_SETTINGS_URL = "https://discord.com/api/v9/users/@me/settings-proto/1"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:129.0) Gecko/20100101 Firefox/129.0"
)
DEFAULT_TIMEOUT = 15

_PACKAGE = "sugarstatus.discord"
_Field = descriptor_pb2.FieldDescriptorProto


class DiscordError(Exception):
    """Discord rejected the settings update."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Discord returned HTTP {status_code}: {body}")


def _build_settings_message():
    """Build the PreloadedUserSettings message class (the subset we send).

    Field numbers follow Discord's user settings protos.
    """
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="sugarstatus/discord_user_settings.proto",
        package=_PACKAGE,
        syntax="proto3",
    )

    custom_status = file_proto.message_type.add(name="CustomStatus")
    for name, number, field_type in (
        ("text", 1, _Field.TYPE_STRING),
        ("emoji_id", 2, _Field.TYPE_FIXED64),
        ("emoji_name", 3, _Field.TYPE_STRING),
        ("expires_at_ms", 4, _Field.TYPE_FIXED64),
        ("created_at_ms", 5, _Field.TYPE_FIXED64),
    ):
        custom_status.field.add(
            name=name, number=number, type=field_type, label=_Field.LABEL_OPTIONAL
        )

    status_settings = file_proto.message_type.add(name="StatusSettings")
    status_settings.field.add(
        name="custom_status",
        number=2,
        type=_Field.TYPE_MESSAGE,
        type_name=f".{_PACKAGE}.CustomStatus",
        label=_Field.LABEL_OPTIONAL,
    )
    status_settings.field.add(
        name="status_expires_at_ms",
        number=4,
        type=_Field.TYPE_FIXED64,
        label=_Field.LABEL_OPTIONAL,
    )

    settings = file_proto.message_type.add(name="PreloadedUserSettings")
    settings.field.add(
        name="status",
        number=11,
        type=_Field.TYPE_MESSAGE,
        type_name=f".{_PACKAGE}.StatusSettings",
        label=_Field.LABEL_OPTIONAL,
    )

    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(file_proto.SerializeToString())
    return message_factory.GetMessageClass(
        pool.FindMessageTypeByName(f"{_PACKAGE}.PreloadedUserSettings")
    )


PreloadedUserSettings = _build_settings_message()


def epoch_ms() -> int:
    return int(time.time() * 1000)


def encode_status_settings(text: str, created_at_ms: Optional[int] = None) -> str:
    """Return the base64 settings payload that sets the custom status to ``text``."""
    settings = PreloadedUserSettings()
    custom = settings.status.custom_status
    custom.text = text
    custom.expires_at_ms = 0  # never expires
    custom.created_at_ms = created_at_ms if created_at_ms is not None else epoch_ms()
    return base64.b64encode(settings.SerializeToString()).decode("ascii")


def set_status(
    token: str,
    text: str,
    *,
    http: Optional[requests.Session] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> None:
    """Set the account's custom status to ``text``.

    Raises DiscordError if Discord rejects the update,
    requests.RequestException on network error.
    """
    client = http if http is not None else requests
    resp = client.patch(
        PROTO_SETTINGS_URL,
        headers={"Authorization": token, "User-Agent": USER_AGENT},
        json={"settings": encode_status_settings(text)},
        timeout=timeout,
    )

    if 200 <= resp.status_code < 300:
        logger.debug("Updated status to %r", text)
        return

    logger.error("Failed to update status to %r: %s", text, resp.text)
    raise DiscordError(resp.status_code, resp.text)
