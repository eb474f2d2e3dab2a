"""Manual smoke run against a live backend (uvicorn main:app on :8000).

Signs up a throwaway user, prints the confirmation outcome, then exercises the
session and chat history actions. Email confirmation needs the verify token,
which is read straight from the SQLite database.
"""
import sqlite3
import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from family6.client.api import Family6Client  # noqa: E402

BASE = "http://localhost:8000"
DB = Path(__file__).resolve().parent.parent / "backend" / "data" / "family6.db"

api = Family6Client(BASE)
email = f"smoke-{uuid.uuid4().hex[:8]}@example.com"

# 1. Signup
print("=== Signup ===")
print(api.signup(email, "password123", "smoke"))

# 2. Login before confirming
print("\n=== Login (unconfirmed) ===")
print(api.login(email, "password123"))

# 3. Confirm via the emailed link
print("\n=== Confirm ===")
conn = sqlite3.connect(DB)
(verify_token,) = conn.execute("SELECT verify_token FROM users WHERE email=?", (email,)).fetchone()
conn.close()
r = api.http.get("/api/actions", params={"action": "confirmEmail", "token": verify_token}, follow_redirects=False)
print(r.status_code, r.headers.get("location"))

# 4. Login + session
print("\n=== Login ===")
print(api.login(email, "password123"))
print(api.get_session())

# 5. Chat history
print("\n=== Chat history ===")
api.save_chat_message("smoke_session", "human", "hello")
api.save_chat_message("smoke_session", "ai", "hi there")
print(api.get_chat_history())
print(api.get_chat_stats())

# 6. Logout
print("\n=== Logout ===")
print(api.logout())
print(api.validate_session())
api.close()
