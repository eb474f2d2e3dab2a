"""Set a user's password directly in the SQLite DB: python reset_pw.py <email> <new password>"""
import os
import sqlite3
import sys

from family6.core.auth import generate_salt, hash_password
from family6.core.clock import utcnow


def reset_password(db_path, email, new_password, now=None):
    """Returns True if a row was updated."""
    salt = generate_salt()
    # stored the way SQLAlchemy's DateTime writes to SQLite (naive UTC)
    stamp = (now or utcnow()).replace(tzinfo=None).strftime("%Y-%m-%d %H:%M:%S.%f")
    conn = sqlite3.connect(db_path)
    try:
        cur = conn.execute(
            "UPDATE users SET password_hash=?, salt=?, reset_token='', reset_token_expires=NULL, updated_at=? "
            "WHERE email=?",
            (hash_password(new_password, salt), salt, stamp, email.strip().lower()),
        )
        conn.commit()
        return cur.rowcount > 0
    finally:
        conn.close()


if __name__ == "__main__":
    os.chdir(os.path.dirname(os.path.abspath(__file__)))
    email = sys.argv[1].strip().lower()
    ok = reset_password("data/family6.db", email, sys.argv[2])
    print(f"Password reset OK for {email}" if ok else f"No user with email {email}")
