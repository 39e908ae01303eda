# accounts/shared/errors.py
"""
Error types raised by identity, reset and billing operations.

The sign-in boundary (SessionIssuer) turns every one of these into a deny
result; the HTTP layer maps them to status codes.
"""


class AccountsError(Exception):
    code = "accounts_error"
    message = "Something went wrong"
    retryable = False

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


# --- authentication ---
class AuthenticationError(AccountsError):
    code = "authentication_failed"


class InvalidCredentials(AuthenticationError):
    # Same text for unknown email and wrong password.
    code = "invalid_credentials"
    message = "Invalid email or password"


class OAuthOnlyAccount(AuthenticationError):
    code = "oauth_only_account"
    message = "This account uses social login. Please sign in with your provider."


class SessionError(AuthenticationError):
    code = "invalid_session"
    message = "Invalid or expired session"


# --- registration ---
class RegistrationError(AccountsError):
    code = "registration_failed"


class WeakPassword(RegistrationError):
    code = "weak_password"


class InvalidEmail(RegistrationError):
    code = "invalid_email"
    message = "Invalid email format"


class EmailAlreadyRegistered(RegistrationError):
    code = "email_already_registered"
    message = "An account with this email already exists"


# --- creation / linkage ---
class CreationConflict(AccountsError):
    code = "creation_conflict"
    message = "Account is being created by another request, try again"
    retryable = True


class LinkageConflict(AccountsError):
    code = "linkage_conflict"
    message = "This provider account is already linked to a different email"


# --- storage ---
class StorageError(AccountsError):
    code = "storage_unavailable"
    message = "Account storage is unavailable"


# --- reset tokens ---
class TokenError(AccountsError):
    code = "invalid_token"
    message = "Invalid or expired reset link"


# --- billing ---
class UserNotFound(AccountsError):
    code = "user_not_found"
    message = "User not found"
