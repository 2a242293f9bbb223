"""Issue a session token for a phone number.

Creates the user if needed and opens a session, e.g. to call the API
from scripts or to test admin endpoints.

Usage:
    python create_token.py +919876543210
"""
import asyncio
import sys

from only2u_api.app.core.db import init_db
from only2u_api.app.services.otp_service import normalize_phone
from only2u_api.app.services.session_service import SessionService
from only2u_api.app.services.user_service import UserService


async def issue_token(phone: str) -> str:
    init_db()
    phone = normalize_phone(phone)
    user, _ = await UserService.get_or_create_by_phone(phone)
    token, _ = await SessionService.create_session(phone, user.id)
    return token


if __name__ == "__main__":
    if len(sys.argv) != 2:
        sys.exit("usage: python create_token.py <phone>")
    print(asyncio.run(issue_token(sys.argv[1])))
