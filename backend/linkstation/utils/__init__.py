from linkstation.utils.security import hash_password, verify_password, generate_admin_token, token_preview

__all__ = ["hash_password", "verify_password", "generate_admin_token", "token_preview"]
