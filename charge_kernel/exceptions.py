"""
Typed Exception Hierarchy for the Charge Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ChargeKernelError:

    ChargeKernelError (base)
    |
    +-- ConfigurationError
    |   +-- DuplicatePluginError
    |   +-- PluginNotFoundError
    |   +-- InvalidPluginSettingsError
    |   +-- PluginConfigScopeError
    |   +-- DuplicatePluginConfigError
    |   +-- PluginConfigNotFoundError
    |   +-- MissingSourceError
    |
    +-- TriggerError
    |   +-- UnsupportedTriggerError
    |   +-- InvalidTriggerPayloadError
    |
    +-- LedgerError
    |   +-- EntityAccountResolutionError
    |   +-- LedgerEntryNotFoundError
    |
    +-- AccountError
        +-- AccountNotFoundError
        +-- AccountReferencedError
        +-- InvalidCurrencyError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
Configuration   | DUPLICATE_PLUGIN              | Plugin id registered twice (startup)
                | PLUGIN_NOT_FOUND              | Unknown plugin id
                | INVALID_PLUGIN_SETTINGS       | Settings blob fails plugin schema
                | PLUGIN_CONFIG_SCOPE           | employer_id inconsistent with scope
                | DUPLICATE_PLUGIN_CONFIG       | Config exists for plugin+scope+employer
                | PLUGIN_CONFIG_NOT_FOUND       | Config id doesn't exist
                | MISSING_SOURCE                | Plugin needs an unsupplied source
----------------|-------------------------------|---------------------------------------
Trigger         | UNSUPPORTED_TRIGGER           | Plugin invoked with foreign trigger
                | INVALID_TRIGGER_PAYLOAD       | Event payload can't build a context
----------------|-------------------------------|---------------------------------------
Ledger          | EA_RESOLUTION_FAILED          | Insert and re-select both found nothing
                | LEDGER_ENTRY_NOT_FOUND        | Entry id doesn't exist
----------------|-------------------------------|---------------------------------------
Account         | ACCOUNT_NOT_FOUND             | Account id doesn't exist
                | ACCOUNT_REFERENCED            | Can't delete, EA links reference it
                | INVALID_CURRENCY              | Not a supported ISO 4217 code

===============================================================================
HANDLING PATTERNS
===============================================================================

Configuration and computation failures are NOT propagated out of the
execution engine: they are recorded on the per-plugin summary and execution
continues with the next plugin.  The engine reserves raised exceptions for
invariant violations; EntityAccountResolutionError is the only one of those
that can occur during normal processing, and the engine reports it as a
failure of the plugin that requested the entry.

    summary = engine.execute_for_trigger(context)
    for outcome in summary.failed:
        log.error(outcome.error_code, extra={"plugin_id": outcome.plugin_id})

Administrative callers (config management, account management) receive the
typed exceptions directly:

    try:
        config_service.create(plugin_id, scope="employer", employer_id=None, ...)
    except PluginConfigScopeError as e:
        return {"error": e.code, "scope": e.scope}
"""


class ChargeKernelError(Exception):
    """
    Base exception for all charge kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "CHARGE_KERNEL_ERROR"


# Configuration-related exceptions


class ConfigurationError(ChargeKernelError):
    """Base exception for plugin registration and configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class DuplicatePluginError(ConfigurationError):
    """A plugin with the same identifier is already registered."""

    code: str = "DUPLICATE_PLUGIN"

    def __init__(self, plugin_id: str):
        self.plugin_id = plugin_id
        super().__init__(f"Charge plugin already registered: {plugin_id}")


class PluginNotFoundError(ConfigurationError):
    """No plugin is registered under the given identifier."""

    code: str = "PLUGIN_NOT_FOUND"

    def __init__(self, plugin_id: str):
        self.plugin_id = plugin_id
        super().__init__(f"Charge plugin not found: {plugin_id}")


class InvalidPluginSettingsError(ConfigurationError):
    """A configuration's settings blob does not satisfy the plugin schema."""

    code: str = "INVALID_PLUGIN_SETTINGS"

    def __init__(self, plugin_id: str, errors: list[str]):
        self.plugin_id = plugin_id
        self.errors = errors
        super().__init__(
            f"Invalid plugin settings for {plugin_id}: {', '.join(errors)}"
        )


class PluginConfigScopeError(ConfigurationError):
    """employer_id is missing for an employer scope, or set on a global one."""

    code: str = "PLUGIN_CONFIG_SCOPE"

    def __init__(self, scope: str, reason: str):
        self.scope = scope
        self.reason = reason
        super().__init__(f"Invalid scope '{scope}': {reason}")


class DuplicatePluginConfigError(ConfigurationError):
    """A configuration already exists for this plugin, scope and employer."""

    code: str = "DUPLICATE_PLUGIN_CONFIG"

    def __init__(self, plugin_id: str, scope: str, employer_id: str | None):
        self.plugin_id = plugin_id
        self.scope = scope
        self.employer_id = employer_id
        target = f" (employer {employer_id})" if employer_id else ""
        super().__init__(
            f"Configuration already exists for {plugin_id} scope {scope}{target}"
        )


class PluginConfigNotFoundError(ConfigurationError):
    """Plugin configuration with the given id was not found."""

    code: str = "PLUGIN_CONFIG_NOT_FOUND"

    def __init__(self, config_id: str):
        self.config_id = config_id
        super().__init__(f"Plugin configuration not found: {config_id}")


class MissingSourceError(ConfigurationError):
    """A plugin needs a collaborator source the host did not supply."""

    code: str = "MISSING_SOURCE"

    def __init__(self, plugin_id: str, source: str):
        self.plugin_id = plugin_id
        self.source = source
        super().__init__(f"Plugin {plugin_id} requires the '{source}' source")


# Trigger-related exceptions


class TriggerError(ChargeKernelError):
    """Base exception for trigger context errors."""

    code: str = "TRIGGER_ERROR"


class UnsupportedTriggerError(TriggerError):
    """A plugin was invoked with a trigger type it does not handle."""

    code: str = "UNSUPPORTED_TRIGGER"

    def __init__(self, plugin_id: str, trigger: str):
        self.plugin_id = plugin_id
        self.trigger = trigger
        super().__init__(
            f"Plugin {plugin_id} does not handle trigger {trigger}"
        )


class InvalidTriggerPayloadError(TriggerError):
    """An event payload is missing fields needed to build a trigger context."""

    code: str = "INVALID_TRIGGER_PAYLOAD"

    def __init__(self, trigger: str, reason: str):
        self.trigger = trigger
        self.reason = reason
        super().__init__(f"Invalid payload for trigger {trigger}: {reason}")


# Ledger-related exceptions


class LedgerError(ChargeKernelError):
    """Base exception for ledger persistence errors."""

    code: str = "LEDGER_ERROR"


class EntityAccountResolutionError(LedgerError):
    """
    Neither the insert nor the re-select produced an EA row.

    The (account, entity) uniqueness constraint makes this unreachable in a
    healthy store, so it is treated as an internal invariant violation.
    """

    code: str = "EA_RESOLUTION_FAILED"

    def __init__(self, account_id: str, entity_type: str, entity_id: str):
        self.account_id = account_id
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Failed to find or create EA for account {account_id}, "
            f"{entity_type} {entity_id}"
        )


class LedgerEntryNotFoundError(LedgerError):
    """Ledger entry with the given id was not found."""

    code: str = "LEDGER_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Ledger entry not found: {entry_id}")


# Account-related exceptions


class AccountError(ChargeKernelError):
    """Base exception for ledger account errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Account with given id was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class AccountReferencedError(AccountError):
    """Account cannot be deleted while EA links reference it."""

    code: str = "ACCOUNT_REFERENCED"

    def __init__(self, account_id: str, link_count: int):
        self.account_id = account_id
        self.link_count = link_count
        super().__init__(
            f"Account {account_id} is referenced by {link_count} entity link(s)"
        )


class InvalidCurrencyError(AccountError, ValueError):
    """Raised when an invalid ISO 4217 currency code is provided."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")
