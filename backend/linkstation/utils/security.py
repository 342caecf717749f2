import secrets
import bcrypt


def hash_password(password: str) -> str:
    """Hash the admin password with bcrypt."""
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password_bytes, salt).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    if not plain_password or not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def generate_admin_token() -> str:
    return secrets.token_hex(32)


def token_preview(token: str) -> str:
    """Shortened token for listings and logs."""
    if len(token) <= 12:
        return token
    return f"{token[:8]}...{token[-4:]}"
