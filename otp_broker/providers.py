# SPDX-License-Identifier: GPL-3.0-only
"""Named account providers."""

from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Type

from base_logger import get_logger
from otp_broker.accounts import AccountRepository, PeeweeAccountRepository
from otp_broker.db_models import Account, account_model_for
from otp_broker.exceptions import UnknownProviderError
from otp_broker.token_store import TokenStore, create_token_cache, get_token_store
from otp_broker.utils import get_configs, get_json_config, import_string

logger = get_logger(__name__)

DEFAULT_PROVIDERS = {"users": {"table": "users"}}


@dataclass
class ProviderConfig:
    """Everything the broker needs for one account provider."""

    name: str
    table_name: str
    model: Type[Account]
    repository: AccountRepository
    token_store: TokenStore


class ProviderRegistry:
    """Provider configurations by name."""

    def __init__(self, default_provider: str):
        self.default_provider = default_provider
        self._providers: Dict[str, ProviderConfig] = {}

    def register(self, config: ProviderConfig) -> ProviderConfig:
        self._providers[config.name] = config
        logger.debug(
            "Registered provider '%s' on table '%s'.", config.name, config.table_name
        )
        return config

    def get(self, name: Optional[str] = None) -> ProviderConfig:
        """Return the named provider, or the default one.

        Raises:
            UnknownProviderError: If the provider is not registered.
        """
        name = name or self.default_provider
        try:
            return self._providers[name]
        except KeyError:
            raise UnknownProviderError(name) from None

    def __contains__(self, name: str) -> bool:
        return name in self._providers

    def __iter__(self) -> Iterator[ProviderConfig]:
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)


def build_provider(
    name: str, binding: dict, default_driver: str, cache=None, clock=None
) -> ProviderConfig:
    """Build one ProviderConfig from its configuration binding.

    Args:
        name: Provider name.
        binding: Mapping with ``table`` and/or ``model`` plus optional
            ``repository`` and ``driver`` keys. When both ``table`` and
            ``model`` are given they must name the same table.
        default_driver: Token storage driver when the binding names none.
        cache: Shared cache for the cache driver.
        clock: Clock passed to the token store and repository.

    Raises:
        ValueError: If the binding has neither table nor model, a table that
            differs from the model's, or an unknown driver.
    """
    table_name = binding.get("table")
    if binding.get("model"):
        model = import_string(binding["model"])
        model_table = model._meta.table_name
        if table_name and table_name != model_table:
            raise ValueError(
                f"Provider '{name}' table '{table_name}' does not match "
                f"model table '{model_table}'."
            )
        table_name = model_table
    elif table_name:
        model = account_model_for(table_name)
    else:
        raise ValueError(f"Provider '{name}' has no 'table' configured.")

    repository_class = (
        import_string(binding["repository"])
        if binding.get("repository")
        else PeeweeAccountRepository
    )
    token_store = get_token_store(
        binding.get("driver") or default_driver, name, cache=cache, clock=clock
    )

    return ProviderConfig(
        name=name,
        table_name=table_name,
        model=model,
        repository=repository_class(model, clock=clock),
        token_store=token_store,
    )


def load_providers(clock=None) -> ProviderRegistry:
    """Load providers from ``OTP_PROVIDERS``.

    All cache-backed providers share one token cache.

    Raises:
        ValueError: If the configuration is invalid.
    """
    default_provider = get_configs("OTP_DEFAULT_PROVIDER", default_value="users")
    default_driver = get_configs("OTP_TOKEN_STORAGE", default_value="cache")
    bindings = get_json_config("OTP_PROVIDERS", DEFAULT_PROVIDERS)

    cache = create_token_cache(clock=clock)
    registry = ProviderRegistry(default_provider)

    for name, binding in bindings.items():
        if not isinstance(binding, dict):
            raise ValueError(f"Provider '{name}' must be a JSON object.")
        registry.register(
            build_provider(name, binding, default_driver, cache=cache, clock=clock)
        )

    if default_provider not in registry:
        raise ValueError(f"Default provider '{default_provider}' is not configured.")

    logger.info("Loaded %d OTP provider(s).", len(registry))
    return registry
