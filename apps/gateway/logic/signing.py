# apps/gateway/logic/signing.py
from __future__ import annotations

import base64
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES
from cryptography.hazmat.primitives import hashes, padding as sym_padding, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, modes
from defusedxml import ElementTree
from defusedxml.common import DefusedXmlException

from apps.gateway.exceptions import ConfigurationError

# порядок элементов .NET RSAKeyValue не важен, важны имена
XML_KEY_PARTS = ("Modulus", "Exponent", "P", "Q", "DP", "DQ", "InverseQ", "D")


def canonical_string(*fields) -> str:
    """
    "#f1#f2#...#fn#" — порядок и разделитель часть контракта банка.
    """
    return "#" + "#".join(str(f) for f in fields) + "#"


def _b64_int(value: str) -> int:
    return int.from_bytes(base64.b64decode(value.strip()), "big")


def _load_xml_key(raw: bytes) -> rsa.RSAPrivateKey:
    try:
        root = ElementTree.fromstring(raw)
    except (ElementTree.ParseError, DefusedXmlException) as exc:
        raise ConfigurationError(f"Invalid RSA XML key: {exc}", code="invalid_key")

    parts = {}
    for name in XML_KEY_PARTS:
        node = root.find(name)
        if node is None or not (node.text or "").strip():
            raise ConfigurationError(f"RSA XML key has no <{name}> element.", code="invalid_key")
        parts[name] = _b64_int(node.text)

    public_numbers = rsa.RSAPublicNumbers(e=parts["Exponent"], n=parts["Modulus"])
    numbers = rsa.RSAPrivateNumbers(
        p=parts["P"],
        q=parts["Q"],
        d=parts["D"],
        dmp1=parts["DP"],
        dmq1=parts["DQ"],
        iqmp=parts["InverseQ"],
        public_numbers=public_numbers,
    )
    try:
        return numbers.private_key()
    except ValueError as exc:
        raise ConfigurationError(f"Invalid RSA XML key: {exc}", code="invalid_key")


def load_private_key(path: str | Path) -> rsa.RSAPrivateKey:
    """
    Загружает приватный ключ мерчанта.

    Банк выдаёт ключ в формате .NET <RSAKeyValue> (XML);
    PEM тоже принимаем, его проще хранить в секретах.
    """
    try:
        raw = Path(path).read_bytes()
    except OSError as exc:
        raise ConfigurationError(f"Cannot read private key {path}: {exc}", code="invalid_key")

    if raw.lstrip().startswith(b"<"):
        return _load_xml_key(raw)

    try:
        key = serialization.load_pem_private_key(raw, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise ConfigurationError(f"Invalid PEM private key {path}: {exc}", code="invalid_key")

    if not isinstance(key, rsa.RSAPrivateKey):
        raise ConfigurationError(f"Private key {path} is not an RSA key.", code="invalid_key")
    return key


def sign_sha1(data: str, key: rsa.RSAPrivateKey) -> str:
    """
    SHA-1 от строки, подпись RSA (PKCS#1 v1.5), base64.
    """
    # RSASSA-PKCS1-v1_5 + SHA-1 DigestInfo: то же, что RSACryptoServiceProvider.SignData(data, "SHA1") у банка
    signature = key.sign(data.encode("utf-8"), padding.PKCS1v15(), hashes.SHA1())
    return base64.b64encode(signature).decode("ascii")


def encrypt_3des(data: str, key_b64: str) -> str:
    """
    Triple-DES (ECB, PKCS7) + base64 — SignData у Sadad.
    """
    try:
        key = base64.b64decode(key_b64)
        cipher = Cipher(TripleDES(key), modes.ECB())
    except ValueError as exc:
        raise ConfigurationError(f"Invalid Triple-DES key: {exc}", code="invalid_key")

    padder = sym_padding.PKCS7(TripleDES.block_size).padder()
    padded = padder.update(data.encode("utf-8")) + padder.finalize()

    encryptor = cipher.encryptor()
    encrypted = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode(encrypted).decode("ascii")


def validate_3des_key(key_b64: str) -> None:
    try:
        key = base64.b64decode(key_b64, validate=True)
    except ValueError as exc:
        raise ConfigurationError(f"Triple-DES key is not valid base64: {exc}", code="invalid_key")
    if len(key) not in (16, 24):
        raise ConfigurationError("Triple-DES key must be 16 or 24 bytes.", code="invalid_key")
