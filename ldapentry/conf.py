"""
Settings lookup for ldapentry.

Everything tunable lives in Django settings.  The in-memory parts of the
package (store, ledger, entry, exporter) must keep working when Django
settings were never configured, so every lookup here falls back to its
default in that case.
"""

from typing import Any

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

#: Standard LDIF line width, also the default of OpenLDAP and python-ldap.
DEFAULT_LDIF_COLUMNS = 76
DEFAULT_ENCODING = "utf-8"


def get_setting(setting_name: str, default_value: Any) -> Any:
    """
    Get a configuration value from Django settings with fallback.

    Args:
        setting_name: Name of the setting (without the ``LDAPENTRY_`` prefix)
        default_value: Default value if the setting is not found, or if
            Django settings have not been configured

    Returns:
        Configuration value from settings or default

    """
    if not settings.configured:
        return default_value
    return getattr(settings, f"LDAPENTRY_{setting_name}", default_value)


def ldif_columns() -> int:
    """Get the LDIF fold width from settings or use the standard 76."""
    return int(get_setting("LDIF_COLUMNS", DEFAULT_LDIF_COLUMNS))


def encoding() -> str:
    """Get the codec used for attribute values on the wire."""
    return get_setting("ENCODING", DEFAULT_ENCODING)


def get_server_config(server: str) -> dict[str, Any]:
    """
    Look up one server block from ``settings.LDAP_SERVERS``.

    Args:
        server: the key in ``settings.LDAP_SERVERS``

    Raises:
        ImproperlyConfigured: ``settings.LDAP_SERVERS`` is missing, or has
            no key named ``server``.

    Returns:
        The configuration dict for ``server``.

    """
    try:
        servers = settings.LDAP_SERVERS
    except (AttributeError, ImproperlyConfigured) as e:
        msg = "settings.LDAP_SERVERS does not exist!"
        raise ImproperlyConfigured(msg) from e
    try:
        return servers[server]
    except KeyError as e:
        msg = f"settings.LDAP_SERVERS has no key '{server}'"
        raise ImproperlyConfigured(msg) from e
