# -*- coding: utf-8 -*-

class SecretLifecycleError(Exception):
    """Base Error class."""


class ConfigError(SecretLifecycleError):
    CUSTOM_ERROR_MESSAGE = "Configuration {} has invalid value {!r}"

    def __init__(self, name, value):
        super(ConfigError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(name, value))
        self.name = name


class AuthError(SecretLifecycleError):
    """Raised when no session token can be established."""


class RenewError(SecretLifecycleError):
    """Raised when a session renewal fails. Advisory only."""


class SecretStoreError(SecretLifecycleError):
    CUSTOM_ERROR_MESSAGE = "Secret {} {}"

    def __init__(self, secret_id, reason):
        super(SecretStoreError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(secret_id, reason))
        self._secret_id = secret_id

    @property
    def secret_id(self):
        return self._secret_id


class LeaseError(SecretStoreError):
    CUSTOM_ERROR_MESSAGE = "Database credentials {} could not be leased: {}"


class NotFoundError(SecretStoreError):
    CUSTOM_ERROR_MESSAGE = "Secret {} not found: {}"


class WriteError(SecretStoreError):
    CUSTOM_ERROR_MESSAGE = "Secret {} could not be written: {}"


class ConnectError(SecretLifecycleError):
    CUSTOM_ERROR_MESSAGE = "Connection to {} as {} failed: {}"

    def __init__(self, target, username, reason):
        super(ConnectError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(target,
                                                                            username,
                                                                            reason))


class RotationError(SecretLifecycleError):
    CUSTOM_ERROR_MESSAGE = "Credential rotation failed {}"

    def __init__(self, error):
        super(RotationError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(str(error)))
        self._error = error

    @property
    def error(self):
        return self._error


class CryptoError(SecretLifecycleError):
    CUSTOM_ERROR_MESSAGE = "Key {} {}"

    def __init__(self, key_name, reason):
        super(CryptoError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(key_name, reason))
        self._key_name = key_name

    @property
    def key_name(self):
        return self._key_name


class EncryptError(CryptoError):
    CUSTOM_ERROR_MESSAGE = "Encrypt with key {} failed: {}"


class DecryptError(CryptoError):
    CUSTOM_ERROR_MESSAGE = "Decrypt with key {} failed: {}"
