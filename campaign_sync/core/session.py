"""
Interface to the backend's SOAP API: logon, queries and persisting records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from logging import Logger
from typing import Iterable, Protocol

import requests
from lxml import etree

from .exceptions import LogonError, QueryError

__all__ = [
    "Backend",
    "Credential",
    "PersistResult",
    "Session",
]

REQUEST_TIMEOUT = 30.0
"""
Timeout for each SOAP request, in seconds.
"""

SOAP_PATH = "/nl/jsp/soaprouter.jsp"

SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
SESSION_NS = "urn:xtk:session"
QUERY_DEF_NS = "urn:xtk:queryDef"
PERSIST_NS = "urn:xtk:persist"


@dataclass(frozen=True, kw_only=True)
class Credential:
    """
    Tokens returned by a successful logon.
    """

    session_token: str
    security_token: str


@dataclass(frozen=True, kw_only=True)
class PersistResult:
    """
    Outcome of writing a single record.
    """

    success: bool
    message: str | None = None


class Backend(Protocol):
    """
    Operations required by the download and upload pipelines.
    """

    def query(
        self, schema_id: str, fields: list[str], conditions: Iterable[str] = ()
    ) -> list[str]:
        ...

    def write(self, element: etree._Element) -> PersistResult:
        ...


class Session:
    """
    Logged-on connection to a backend instance.
    """

    _host: str
    """
    Host as configured by user, e.g. `https://campaign.example.com`.
    """

    _credential: Credential | None = None

    _logger: Logger

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        *,
        logon: bool = True,
        logger: Logger | None = None,
    ):
        """
        :param host: Base URL of the backend
        :param username: Operator login
        :param password: Operator password
        :param logon: Log on immediately
        :param logger: Logger to use, or `None` to use default logger
        """
        self._host = host.rstrip("/")
        self._username = username
        self._password = password
        self._logger = logger or logging.getLogger()

        if logon:
            self.logon()

    @property
    def host(self) -> str:
        return self._host

    @property
    def url(self) -> str:
        return f"{self._host}{SOAP_PATH}"

    @property
    def credential(self) -> Credential:
        assert self._credential is not None, "Session is not logged on"
        return self._credential

    def logon(self) -> Credential:
        """
        Log on and store the returned tokens for subsequent requests.
        """
        body = etree.Element(f"{{{SESSION_NS}}}Logon", nsmap={"urn": SESSION_NS})
        etree.SubElement(body, f"{{{SESSION_NS}}}sessiontoken")
        etree.SubElement(body, f"{{{SESSION_NS}}}strLogin").text = self._username
        etree.SubElement(
            body, f"{{{SESSION_NS}}}strPassword"
        ).text = self._password
        etree.SubElement(body, f"{{{SESSION_NS}}}elemParameters")

        try:
            response = self._call("xtk:session#Logon", body, authenticate=False)
        except (_SoapFault, requests.RequestException) as e:
            self._logger.error(
                f"Logon failed for user '{self._username}' at '{self._host}': {e}"
            )
            raise LogonError(str(e)) from e

        session_token = response.findtext(f"{{{SESSION_NS}}}pstrSessionToken")
        security_token = response.findtext(
            f"{{{SESSION_NS}}}pstrSecurityToken"
        )

        if not session_token or not security_token:
            self._logger.error(
                f"Logon failed for user '{self._username}' at '{self._host}': "
                "response did not contain tokens"
            )
            raise LogonError("Logon response did not contain tokens")

        self._credential = Credential(
            session_token=session_token, security_token=security_token
        )

        self._logger.debug(f"Logged on to '{self._host}' as '{self._username}'")

        return self._credential

    def query(
        self, schema_id: str, fields: list[str], conditions: Iterable[str] = ()
    ) -> list[str]:
        """
        Select the given fields of all records matching the conditions,
        returning each row as a serialized xml element.
        """
        body = etree.Element(
            f"{{{QUERY_DEF_NS}}}ExecuteQuery", nsmap={"urn": QUERY_DEF_NS}
        )
        etree.SubElement(
            body, f"{{{QUERY_DEF_NS}}}sessiontoken"
        ).text = self.credential.session_token
        entity = etree.SubElement(body, f"{{{QUERY_DEF_NS}}}entity")

        query_def = etree.SubElement(
            entity,
            "queryDef",
            schema=schema_id,
            operation="select",
        )
        select = etree.SubElement(query_def, "select")
        for field in fields:
            etree.SubElement(select, "node", expr=field)

        conditions = list(conditions)
        if conditions:
            where = etree.SubElement(query_def, "where")
            for condition in conditions:
                etree.SubElement(where, "condition", expr=condition)

        try:
            response = self._call("xtk:queryDef#ExecuteQuery", body)
        except (_SoapFault, requests.RequestException) as e:
            raise QueryError(f"Query of {schema_id} failed: {e}") from e

        output = response.find(f"{{{QUERY_DEF_NS}}}pdomOutput")
        if output is None or not len(output):
            return []

        # rows are children of the single collection element
        collection = output[0]
        rows = [
            etree.tostring(row, encoding="unicode")
            for row in collection
            if isinstance(row.tag, str)
        ]

        self._logger.debug(f"Query of {schema_id} returned {len(rows)} rows")

        return rows

    def write(self, element: etree._Element) -> PersistResult:
        """
        Create or update the record described by `element`.
        """
        body = etree.Element(f"{{{PERSIST_NS}}}Write", nsmap={"urn": PERSIST_NS})
        etree.SubElement(
            body, f"{{{PERSIST_NS}}}sessiontoken"
        ).text = self.credential.session_token
        dom_doc = etree.SubElement(body, f"{{{PERSIST_NS}}}domDoc")
        dom_doc.append(element)

        try:
            self._call("xtk:persist#Write", body)
        except (_SoapFault, requests.RequestException) as e:
            return PersistResult(success=False, message=str(e))
        finally:
            # leave caller's element unattached
            dom_doc.remove(element)

        return PersistResult(success=True)

    def _call(
        self, action: str, body: etree._Element, *, authenticate: bool = True
    ) -> etree._Element:
        """
        Post a SOAP request and return the first element of the response
        body, raising `_SoapFault` on a fault.
        """
        envelope = etree.Element(
            f"{{{SOAP_ENV_NS}}}Envelope", nsmap={"soapenv": SOAP_ENV_NS}
        )
        etree.SubElement(envelope, f"{{{SOAP_ENV_NS}}}Header")
        etree.SubElement(envelope, f"{{{SOAP_ENV_NS}}}Body").append(body)

        headers = {
            "Content-Type": "text/xml; charset=utf-8",
            "SOAPAction": action,
        }
        cookies: dict[str, str] = {}

        if authenticate:
            headers["X-Security-Token"] = self.credential.security_token
            cookies["__sessiontoken"] = self.credential.session_token

        response = requests.post(
            self.url,
            data=etree.tostring(envelope, xml_declaration=True, encoding="utf-8"),
            headers=headers,
            cookies=cookies,
            timeout=REQUEST_TIMEOUT,
        )

        try:
            document = etree.fromstring(response.content)
        except etree.XMLSyntaxError:
            raise _SoapFault(
                f"Unexpected response from {action}: status={response.status_code}"
            )

        response_body = document.find(f"{{{SOAP_ENV_NS}}}Body")
        if response_body is None or not len(response_body):
            raise _SoapFault(f"Empty response from {action}")

        result = response_body[0]
        if etree.QName(result).localname == "Fault":
            fault_string = result.findtext("faultstring") or ""
            detail = result.findtext("detail") or ""
            raise _SoapFault(f"{fault_string} {detail}".strip())

        return result


class _SoapFault(Exception):
    """
    Raised internally when the backend returns a SOAP fault.
    """
