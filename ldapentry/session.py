# mypy: disable-error-code="attr-defined"
"""
The directory session: the collaborator that actually talks to the server.

:py:class:`DirectorySession` is the contract
:py:class:`~ldapentry.entry.DirectoryEntry` relies on.
:py:class:`LdapSession` implements it with python-ldap, reading its server
configuration from ``settings.LDAP_SERVERS`` the same way for every server.
"""

import logging
import threading
from collections.abc import Callable, Sequence
from functools import wraps
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

from django.core.exceptions import ImproperlyConfigured
from ldap_filter import Filter

from ldapentry import ldap

from .conf import encoding, get_server_config
from .modlist import Operation, encode_attributes
from .typing import LDAPData, ModifyModList, RawAttributes, RawRecord

if TYPE_CHECKING:
    from .entry import DirectoryEntry

logger = logging.getLogger(__name__)


class ProtocolError(Exception):
    """
    The directory refused a request, or could not be reached.

    Wraps the :py:class:`ldap.LDAPError` python-ldap raised.

    Args:
        message: what we were doing when it failed

    Keyword Args:
        dn: the DN of the entry the request was about
        error: the python-ldap exception that caused this

    """

    def __init__(
        self,
        message: str,
        dn: str | None = None,
        error: Exception | None = None,
    ) -> None:
        self.dn = dn
        self.error = error
        details: dict[str, Any] = {}
        if error is not None and error.args and isinstance(error.args[0], dict):
            details = error.args[0]
        #: LDAP result code, if the server sent one
        self.result: int | None = details.get("result")
        self.desc: str = details.get("desc", str(error) if error else "")
        self.info: str = details.get("info", "")
        super().__init__(message)

    def __str__(self) -> str:
        msg = self.args[0]
        if self.dn:
            msg = f"{msg} dn={self.dn}"
        if self.desc:
            msg = f"{msg}: {self.desc}"
        if self.info:
            msg = f"{msg} ({self.info})"
        return msg


class DirectorySession:
    """
    What a directory entry needs from the server side.

    Each call is atomic: it either fully succeeds or raises
    :py:class:`ProtocolError` with nothing applied.
    """

    def create_entry(self, dn: str, attributes: RawAttributes) -> None:
        """
        Create the entry ``dn`` with ``attributes`` as its initial values.

        Raises:
            ProtocolError: the entry could not be created

        """
        raise NotImplementedError

    def apply_modifications(self, dn: str, ops: Sequence[Operation]) -> None:
        """
        Apply ``ops`` to the existing entry ``dn``, in order.

        Raises:
            ProtocolError: the entry could not be modified

        """
        raise NotImplementedError

    def fetch_raw_record(self, dn: str) -> RawRecord:
        """
        Read the entry ``dn`` as ``(dn, {attribute: [value, ...]})``.

        Raises:
            ProtocolError: the entry could not be read

        """
        raise NotImplementedError


def atomic(func: Callable) -> Callable:
    """
    Decorator to wrap :py:class:`LdapSession` methods that need to talk to
    the LDAP server.

    Opens a connection for the current thread before the call and closes it
    afterwards.  If the thread already has a connection (we're being called
    from inside another wrapped method, or the caller connected by hand) that
    one is reused and left open.

    Args:
        func: The function to wrap.

    Returns:
        The wrapped function.

    """

    @wraps(func)
    def wrapper(self, *args, **kwargs) -> Any:
        if self.has_connection():
            return func(self, *args, **kwargs)
        self.connect()
        try:
            retval = func(self, *args, **kwargs)
        finally:
            # disconnect no matter what happens in `func()`
            self.disconnect()
        return retval

    return wrapper


class LdapSession(DirectorySession):
    """
    :py:class:`DirectorySession` backed by python-ldap.

    The server is described by ``settings.LDAP_SERVERS[server][key]``:

    .. code-block:: python

        LDAP_SERVERS = {
            "default": {
                "basedn": "dc=example,dc=com",
                "read": {"url": "ldap://ldap.example.com", "user": "...", "password": "..."},
                "write": {"url": "ldap://ldap.example.com", "user": "...", "password": "..."},
            }
        }

    This class is thread-safe: each thread gets its own LDAP connection,
    because python-ldap connection objects must not be shared between
    threads.

    Keyword Args:
        server: the key in ``settings.LDAP_SERVERS``
        key: which connection block of that server to use, ``read`` or
            ``write``

    Raises:
        ImproperlyConfigured: the server or connection block is not configured

    """

    def __init__(self, server: str = "default", key: str = "write") -> None:
        self.logger = logger
        self.server = server
        self.key = key
        self.config: dict[str, Any] = get_server_config(server)
        if key not in self.config:
            msg = f"settings.LDAP_SERVERS['{server}'] has no '{key}' key"
            raise ImproperlyConfigured(msg)
        self.basedn: str | None = self.config.get("basedn")
        # keys in this dictionary get manipulated by .connect() and .disconnect()
        self._ldap_objects: dict[threading.Thread, ldap.ldapobject.LDAPObject] = {}

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.config[self.key].get('url')}>"

    # -----------------------
    # Connection handling
    # -----------------------

    def has_connection(self) -> bool:
        """Does the current thread have an open LDAP connection?"""
        return threading.current_thread() in self._ldap_objects

    @property
    def connection(self) -> ldap.ldapobject.LDAPObject:
        """The current thread's LDAP connection object."""
        return self._ldap_objects[threading.current_thread()]

    def connect(self, dn: str | None = None, password: str | None = None) -> None:
        """
        Open and bind a connection for the current thread.

        Keyword Args:
            dn: bind as this DN instead of the configured user
            password: the password for ``dn``

        Raises:
            ProtocolError: the server could not be reached, or refused the bind

        """
        try:
            self._ldap_objects[threading.current_thread()] = self._connect(
                dn=dn, password=password
            )
        except ldap.LDAPError as e:
            self.logger.warning(
                "ldapentry.session.connect.failed url=%s error=%s",
                self.config[self.key].get("url"),
                e,
            )
            msg = "Could not connect to the LDAP server"
            raise ProtocolError(msg, dn=dn, error=e) from e

    def disconnect(self) -> None:
        """Unbind and forget the current thread's connection."""
        connection = self._ldap_objects.pop(threading.current_thread())
        connection.unbind_s()

    @staticmethod
    def _check_file(label: str, filename: str) -> None:
        path = Path(filename)
        if not path.exists():
            msg = f"{label} file does not exist: {filename}"
            raise OSError(msg)
        if not path.is_file():
            msg = f"{label} file is not a file: {filename}"
            raise OSError(msg)

    def _connect(
        self, dn: str | None = None, password: str | None = None
    ) -> ldap.ldapobject.LDAPObject:
        """
        Create, configure and bind a new LDAP connection object.

        Keyword Args:
            dn: Optional bind DN.
            password: Optional password.

        Raises:
            ValueError: If the ``tls_verify`` value in the configuration is invalid.
            OSError: If a configured TLS certificate or key file does not exist
                or is not a file.

        Returns:
            A bound LDAPObject.

        """
        config = self.config[self.key]
        if not dn:
            dn = config.get("user")
            password = config.get("password")
        ldap_object = ldap.initialize(config["url"])
        ldap_object.set_option(
            ldap.OPT_REFERRALS, 1 if config.get("follow_referrals", False) else 0
        )
        ldap_object.set_option(
            ldap.OPT_NETWORK_TIMEOUT, float(config.get("timeout", 15.0))
        )
        if sizelimit := config.get("sizelimit", None):
            ldap_object.set_option(ldap.OPT_SIZELIMIT, int(sizelimit))
        tls_verify = config.get("tls_verify", "never")
        if tls_verify == "never":
            ldap_object.set_option(ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_NEVER)
        elif tls_verify == "always":
            ldap_object.set_option(ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_DEMAND)
        else:
            msg = f"Invalid tls_verify value: {tls_verify}"
            raise ValueError(msg)
        for label, option, setting in (
            ("CA Certificate", ldap.OPT_X_TLS_CACERTFILE, "tls_ca_certfile"),
            ("TLS Certificate", ldap.OPT_X_TLS_CERTFILE, "tls_certfile"),
            ("TLS Key", ldap.OPT_X_TLS_KEYFILE, "tls_keyfile"),
        ):
            if filename := config.get(setting, None):
                self._check_file(label, filename)
                ldap_object.set_option(option, filename)
        ldap_object.set_option(ldap.OPT_X_TLS_NEWCTX, 0)
        try:
            if config.get("use_starttls", True):
                ldap_object.start_tls_s()
            ldap_object.simple_bind_s(dn, password)
        except ldap.LDAPError:
            ldap_object.unbind_s()
            raise
        return ldap_object

    # -----------------------
    # DirectorySession
    # -----------------------

    @atomic
    def create_entry(self, dn: str, attributes: RawAttributes) -> None:
        _modlist = encode_attributes(attributes)
        try:
            self.connection.add_s(dn, _modlist)
        except ldap.LDAPError as e:
            self.logger.warning("ldapentry.session.add.failed dn=%s error=%s", dn, e)
            msg = "Could not create entry"
            raise ProtocolError(msg, dn=dn, error=e) from e
        self.logger.info(
            "ldapentry.session.add.success dn=%s attributes=%d", dn, len(_modlist)
        )

    def apply_modifications(self, dn: str, ops: Sequence[Operation]) -> None:
        if not ops:
            # modify_s with an empty modlist is a protocol error on most servers
            self.logger.debug("ldapentry.session.modify.no-changes dn=%s", dn)
            return
        self._modify(dn, [op.as_modlist() for op in ops])

    @atomic
    def _modify(self, dn: str, _modlist: ModifyModList) -> None:
        try:
            self.connection.modify_s(dn, _modlist)
        except ldap.LDAPError as e:
            self.logger.warning("ldapentry.session.modify.failed dn=%s error=%s", dn, e)
            msg = "Could not modify entry"
            raise ProtocolError(msg, dn=dn, error=e) from e
        self.logger.info(
            "ldapentry.session.modify.success dn=%s operations=%d", dn, len(_modlist)
        )

    def fetch_raw_record(self, dn: str) -> RawRecord:
        results = self.search(basedn=dn, scope=ldap.SCOPE_BASE)
        if not results:
            msg = "No such entry"
            raise ProtocolError(msg, dn=dn)
        return results[0]

    # -----------------------
    # Reading
    # -----------------------

    @staticmethod
    def decode(data: LDAPData) -> RawRecord:
        """
        Decode a python-ldap search result into a raw record of strings.

        Args:
            data: ``(dn, {attribute: [bytes, ...]})``

        Returns:
            ``(dn, {attribute: [str, ...]})``

        """
        codec = encoding()
        dn, attrs = data
        return (dn, {attr: [v.decode(codec) for v in values] for attr, values in attrs.items()})

    @atomic
    def search(
        self,
        basedn: str | None = None,
        searchfilter: str | None = None,
        scope: int = ldap.SCOPE_SUBTREE,
        attributes: list[str] | None = None,
    ) -> list[RawRecord]:
        """
        Search the directory and return the matching entries as raw records.

        Keyword Args:
            basedn: where to search from; defaults to the server's ``basedn``
            searchfilter: an LDAP filter string; defaults to
                ``(objectClass=*)``
            scope: LDAP search scope
            attributes: the attributes to fetch; defaults to all user
                attributes

        Raises:
            ImproperlyConfigured: no ``basedn`` given and none configured
            ProtocolError: the search failed.  A base-scope search for an entry
                that does not exist returns ``[]`` instead.

        Returns:
            A list of ``(dn, {attribute: [value, ...]})``.

        """
        basedn = basedn or self.basedn
        if not basedn:
            msg = f"settings.LDAP_SERVERS['{self.server}'] has no 'basedn' key"
            raise ImproperlyConfigured(msg)
        if not searchfilter:
            searchfilter = Filter.attribute("objectClass").present().to_string()
        try:
            rdata = self.connection.search_s(basedn, scope, searchfilter, attributes)
        except ldap.NO_SUCH_OBJECT:
            self.logger.debug("ldapentry.session.search.no-such-object basedn=%s", basedn)
            return []
        except ldap.LDAPError as e:
            self.logger.warning(
                "ldapentry.session.search.failed basedn=%s error=%s", basedn, e
            )
            msg = "Search failed"
            raise ProtocolError(msg, dn=basedn, error=e) from e
        # Referrals come back with a non-dict in place of the attributes
        return [
            self.decode(cast("LDAPData", (dn, attrs)))
            for dn, attrs in rdata
            if isinstance(attrs, dict)
        ]

    def get_entry(self, dn: str) -> "DirectoryEntry":
        """
        Read the entry ``dn`` from the server.

        Raises:
            ProtocolError: the entry does not exist or could not be read

        """
        from .entry import DirectoryEntry

        return DirectoryEntry.from_record(*self.fetch_raw_record(dn))

    def entries(self, *args, **kwargs) -> list["DirectoryEntry"]:
        """
        Like :py:meth:`search`, but return
        :py:class:`~ldapentry.entry.DirectoryEntry` objects.
        """
        from .entry import DirectoryEntry

        return [DirectoryEntry.from_record(dn, attrs) for dn, attrs in self.search(*args, **kwargs)]
