"""Decorators injecting key value secrets into functions"""
import functools

from .exceptions import NotFoundError


class InjectSecretString:
    """Decorator injecting one key value secret field as the first argument"""

    def __init__(self, store, path, field):
        """
        Constructs a decorator to inject a single non-keyworded argument from a key value secret.

        :type store: gcp_secretmanager_lifecycle.CredentialStoreClient
        :param store: The client used to read the secret

        :type path: str
        :param path: The secret identifier

        :type field: str
        :param field: Key of the secret mapping to inject
        """

        self.store = store
        self.path = path
        self.field = field

    def __call__(self, func):
        """
        Return a function with the secret injected as first argument.

        :type func: object
        :param func: The function for injecting a single non-keyworded argument too.
        :return The function with the injected argument.
        """
        secret = self.store.get_key_value_secret(self.path, self.field)

        @functools.wraps(func)
        def _wrapped_func(*args, **kwargs):
            return func(secret, *args, **kwargs)

        return _wrapped_func


class InjectKeywordedSecretString:
    """Decorator injecting keyword arguments resolved from a key value secret"""

    def __init__(self, store, path, **kwargs):
        """
        Construct a decorator to inject a variable list of keyword arguments to a given function
        with resolved values from a key value secret.

        :type kwargs: dict
        :param kwargs: dictionary mapping original keyword argument of wrapped function to
            secret key
        """

        self.store = store
        self.path = path
        self.kwarg_map = kwargs

    def __call__(self, func):
        secret = self.store.get_key_value_secret(self.path)

        resolved_kwargs = dict()
        for orig_kwarg, secret_key in self.kwarg_map.items():
            try:
                resolved_kwargs[orig_kwarg] = secret[secret_key]
            except KeyError:
                raise NotFoundError(self.store.secret_name(self.path),
                                    f"has no key {secret_key}") from None

        @functools.wraps(func)
        def _wrapped_func(*args, **kwargs):
            return func(*args, **resolved_kwargs, **kwargs)

        return _wrapped_func
