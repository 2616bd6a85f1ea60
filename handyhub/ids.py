"""ID generation utilities."""

import secrets

from nanoid import generate

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
ID_LENGTH = 12


def gen_id(prefix: str) -> str:
    return f"{prefix}{generate(ALPHABET, ID_LENGTH)}"


def user_id() -> str:
    return gen_id("us_")


def task_id() -> str:
    return gen_id("tk_")


def chat_id() -> str:
    return gen_id("ch_")


def message_id() -> str:
    return gen_id("ms_")


def notification_id() -> str:
    return gen_id("nt_")


def feedback_id() -> str:
    return gen_id("fb_")


def api_key() -> str:
    return f"hh_{secrets.token_urlsafe(24)}"
