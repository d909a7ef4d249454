"""Interactive Telegram authorization.

Used once to create a session (QR code or phone code), and again whenever the
saved session is revoked. Non-interactive runs can preset LOGIN_METHOD,
PHONE and 2FA in the environment.
"""

from __future__ import annotations

import logging
import os
from getpass import getpass
from typing import Optional

import qrcode
from telethon import TelegramClient, errors

LOGGER = logging.getLogger(__name__)

QR_TIMEOUT_SECONDS = 120


def _print_qr(url: str) -> None:
    qr = qrcode.QRCode(border=1)
    qr.add_data(url)
    qr.make(fit=True)
    qr.print_ascii(invert=True)


def _resolve_2fa_password() -> str:
    password = os.getenv("2FA")
    if password:
        return password
    return getpass("2FA password: ")


async def _authorize_with_qr(client: TelegramClient) -> None:
    qr = await client.qr_login()
    _print_qr(qr.url)
    await qr.wait(timeout=QR_TIMEOUT_SECONDS)


async def _authorize_with_phone(client: TelegramClient, phone: Optional[str]) -> None:
    phone = phone or input("Phone number (international format): ").strip()
    await client.send_code_request(phone)
    code = input("Login code: ").strip()
    await client.sign_in(phone=phone, code=code)


def _pick_login_method(phone: Optional[str]) -> str:
    method = (os.getenv("LOGIN_METHOD") or "").strip().lower()
    if method in {"qr", "phone"}:
        return method
    if phone:
        return "phone"
    while True:
        print("")
        print("Login methods:")
        print("[1] QR code")
        print("[2] Phone code")
        print("[3] Exit")
        choice = input("autoresponder > ").strip()
        if choice == "1":
            return "qr"
        if choice == "2":
            return "phone"
        if choice == "3":
            raise SystemExit(0)
        print("Invalid option. Please choose 1, 2, or 3.")


async def authorize(client: TelegramClient, phone: Optional[str] = None) -> None:
    """Log the client in unless its session is already authorized."""

    if await client.is_user_authorized():
        LOGGER.info("Existing session is authorized")
        return

    LOGGER.info("Authorization required, starting login")
    try:
        if _pick_login_method(phone) == "phone":
            await _authorize_with_phone(client, phone)
        else:
            await _authorize_with_qr(client)
    except errors.SessionPasswordNeededError:
        await client.sign_in(password=_resolve_2fa_password())

    me = await client.get_me()
    LOGGER.info("Logged in as %s", getattr(me, "first_name", None) or getattr(me, "id", "unknown"))
