# apps/gateway/logic/transport.py
from __future__ import annotations

import logging
from typing import Any

import requests
import zeep
from defusedxml import ElementTree
from defusedxml.common import DefusedXmlException
from zeep.exceptions import Error as ZeepError
from zeep.helpers import serialize_object
from zeep.transports import Transport

from apps.gateway.exceptions import TransportFailure

logger = logging.getLogger(__name__)


def soap_call(wsdl: str, operation: str, *, timeout: int, **params) -> Any:
    """
    Вызов SOAP-операции; результат — обычные dict/list/str (serialize_object).

    Любой сбой (WSDL не загрузился, Fault, таймаут) -> TransportFailure.
    """
    try:
        client = zeep.Client(wsdl, transport=Transport(timeout=timeout, operation_timeout=timeout))
        result = client.service[operation](**params)
    except (ZeepError, requests.RequestException, AttributeError) as exc:
        logger.exception("SOAP %s failed: %s", operation, wsdl)
        raise TransportFailure(f"{operation}: {exc}", url=wsdl) from exc

    return serialize_object(result, dict)


def soap_result(response: Any, key: str) -> Any:
    """
    zeep разворачивает ответ из одного элемента сам, поэтому
    {"FooResult": {...}} и {...} — оба допустимы.
    """
    if isinstance(response, dict) and key in response:
        return response[key]
    return response


def http_post(url: str, *, timeout: int, **kwargs) -> requests.Response:
    try:
        resp = requests.post(url, timeout=timeout, **kwargs)
    except requests.RequestException as exc:
        logger.exception("POST %s failed", url)
        raise TransportFailure(str(exc), url=url) from exc

    if resp.status_code >= 500:
        raise TransportFailure(f"HTTP {resp.status_code} from provider", url=url)
    return resp


def post_form(url: str, fields: dict[str, Any], *, timeout: int) -> str:
    """application/x-www-form-urlencoded POST, возвращает тело как текст."""
    resp = http_post(url, timeout=timeout, data=fields)
    if resp.status_code >= 400:
        raise TransportFailure(f"HTTP {resp.status_code} from provider", url=url)
    return resp.text


def post_json(
    url: str,
    payload: dict[str, Any] | None = None,
    *,
    timeout: int,
    form: bool = False,
    headers: dict[str, str] | None = None,
    auth: tuple[str, str] | None = None,
) -> dict[str, Any]:
    """
    POST, ответ — JSON-объект.

    4xx не считаем транспортной ошибкой: REST-провайдеры кладут
    код ошибки в тело, его разбирает драйвер.
    """
    body = {"data": payload} if form else {"json": payload}
    resp = http_post(url, timeout=timeout, headers=headers, auth=auth, **body)

    try:
        data = resp.json()
    except ValueError as exc:
        raise TransportFailure(f"Malformed JSON from provider (HTTP {resp.status_code})", url=url) from exc

    if not isinstance(data, dict):
        raise TransportFailure("Unexpected JSON shape from provider", url=url)
    return data


def _element_to_value(element):
    children = list(element)
    if not children:
        return (element.text or "").strip()
    return {child.tag: _element_to_value(child) for child in children}


def parse_xml_tree(text: str) -> dict[str, Any]:
    """
    <resultObj><result>True</result>...</resultObj>
        -> {"resultObj": {"result": "True", ...}}
    """
    try:
        root = ElementTree.fromstring(text)
    except (ElementTree.ParseError, DefusedXmlException) as exc:
        raise TransportFailure(f"Malformed XML from provider: {exc}") from exc

    return {root.tag: _element_to_value(root)}
