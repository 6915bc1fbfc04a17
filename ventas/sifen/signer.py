"""Firma XAdES-BES (XML-DSig enveloped) del Documento Electrónico.

La firma se arma directamente con ``lxml`` y ``cryptography``:

* ``SignedProperties`` se construye con el emisor y el número de serie reales
  del certificado antes de calcular la firma.
* Dos referencias: el nodo ``DE`` (transformaciones enveloped + C14N exclusiva)
  y ``SignedProperties`` (sólo C14N exclusiva, ``Type`` de propiedades firmadas).
* Canonicalización C14N exclusiva, RSA-SHA256 y digest SHA-256.

``ds:Signature`` queda como hermano siguiente de ``DE`` dentro de ``rDE``.

``XAdESSigner`` de signxml emite ``SigningCertificateV2`` sin
``X509IssuerName``/``X509SerialNumber``, por eso la firma no pasa por
``XMLSigner``. La verificación sí usa ``signxml.XMLVerifier``.
"""

from __future__ import annotations

import base64
import datetime as dt
import functools
import hashlib
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.serialization import pkcs12
from django.utils import timezone
from lxml import etree
from signxml import CanonicalizationMethod, DigestAlgorithm, SignatureMethod, XMLVerifier, methods
from signxml.exceptions import InvalidInput
from signxml.exceptions import InvalidSignature as InvalidXMLSignature

from .config import get_setting
from .exceptions import SigningError
from .xml_builder import SIFEN_NS

logger = logging.getLogger(__name__)

DS_NS = "http://www.w3.org/2000/09/xmldsig#"
XADES_NS = "http://uri.etsi.org/01903/v1.3.2#"
SIGNED_PROPERTIES_TYPE = "http://uri.etsi.org/01903#SignedProperties"

C14N_ALGORITHM = CanonicalizationMethod.EXCLUSIVE_XML_CANONICALIZATION_1_0.value
SIGNATURE_ALGORITHM = SignatureMethod.RSA_SHA256.value
DIGEST_ALGORITHM = DigestAlgorithm.SHA256.value
ENVELOPED_TRANSFORM = methods.enveloped.value


def _ds(tag: str) -> str:
    return f"{{{DS_NS}}}{tag}"


def _xades(tag: str) -> str:
    return f"{{{XADES_NS}}}{tag}"


def _c14n(element: etree._Element) -> bytes:
    return etree.tostring(element, method="c14n", exclusive=True, with_comments=False)


def _sha256_b64(data: bytes) -> str:
    return base64.b64encode(hashlib.sha256(data).digest()).decode("ascii")


def _name_to_string(name: x509.Name) -> str:
    return name.rfc4514_string()


@dataclass(frozen=True)
class SigningContext:
    """Certificado y llave privada listos para firmar."""

    private_key: Any
    certificate: x509.Certificate
    additional_certs: tuple[x509.Certificate, ...] = ()

    @property
    def certificate_pem(self) -> str:
        return self.certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")

    @property
    def private_key_pem(self) -> str:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")

    @property
    def certificate_der(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.DER)

    @property
    def serial_number(self) -> str:
        return str(self.certificate.serial_number)

    @property
    def subject(self) -> str:
        return _name_to_string(self.certificate.subject)

    @property
    def issuer(self) -> str:
        return _name_to_string(self.certificate.issuer)

    @property
    def not_before(self) -> dt.datetime:
        return self.certificate.not_valid_before_utc

    @property
    def not_after(self) -> dt.datetime:
        return self.certificate.not_valid_after_utc

    def metadata(self) -> dict[str, str]:
        return {
            "serial": self.serial_number,
            "subject": self.subject,
            "issuer": self.issuer,
            "not_before": self.not_before.isoformat(),
            "not_after": self.not_after.isoformat(),
        }


def load_signing_context(path: str, password: Optional[str]) -> SigningContext:
    """Lee un almacén PKCS#12 y devuelve su llave y certificado."""

    if not path:
        raise SigningError("SIFEN_CERT_PATH no está configurado")

    try:
        with open(path, "rb") as fh:
            data = fh.read()
    except FileNotFoundError as exc:
        raise SigningError(f"El certificado no existe: {path}") from exc
    except OSError as exc:
        raise SigningError(f"No se pudo leer el certificado en {path}: {exc}") from exc

    try:
        private_key, certificate, additional = pkcs12.load_key_and_certificates(
            data,
            password.encode("utf-8") if password else None,
        )
    except (ValueError, TypeError) as exc:
        raise SigningError("No se pudo abrir el certificado PKCS#12 (¿contraseña incorrecta?)") from exc

    if private_key is None or certificate is None:
        raise SigningError("El certificado PKCS#12 no contiene llave privada o certificado")

    context = SigningContext(
        private_key=private_key,
        certificate=certificate,
        additional_certs=tuple(additional or ()),
    )
    logger.info("SIFEN: certificado cargado (serie %s, vence %s)", context.serial_number, context.not_after)
    return context


@functools.lru_cache(maxsize=1)
def get_signing_context() -> SigningContext:
    """Contexto de firma del proceso, cargado en el primer uso."""

    return load_signing_context(get_setting("SIFEN_CERT_PATH") or "", get_setting("SIFEN_CERT_PASS"))


def refresh_signing_context() -> None:
    """Invalidar el certificado en memoria para forzar una nueva lectura."""

    get_signing_context.cache_clear()


@dataclass(frozen=True)
class DocumentoFirmado:
    xml: str
    certificado: dict[str, str]
    signature_id: str
    digest_value: str


def _parse(xml_payload: str | bytes) -> etree._Element:
    data = xml_payload.encode("utf-8") if isinstance(xml_payload, str) else xml_payload
    parser = etree.XMLParser(remove_blank_text=True)
    try:
        return etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError as exc:
        raise SigningError("XML inválido para la firma SIFEN") from exc


def _add_reference(
    signed_info: etree._Element,
    uri: str,
    transforms: tuple[str, ...],
    ref_type: Optional[str] = None,
) -> etree._Element:
    reference = etree.SubElement(signed_info, _ds("Reference"), URI=uri)
    if ref_type:
        reference.set("Type", ref_type)
    transforms_el = etree.SubElement(reference, _ds("Transforms"))
    for algorithm in transforms:
        etree.SubElement(transforms_el, _ds("Transform"), Algorithm=algorithm)
    etree.SubElement(reference, _ds("DigestMethod"), Algorithm=DIGEST_ALGORITHM)
    etree.SubElement(reference, _ds("DigestValue"))
    return reference


def _build_signed_properties(
    parent: etree._Element,
    context: SigningContext,
    signature_id: str,
    properties_id: str,
    signing_time: dt.datetime,
) -> etree._Element:
    qualifying = etree.SubElement(
        parent,
        _xades("QualifyingProperties"),
        nsmap={"xades": XADES_NS},
        Target=f"#{signature_id}",
    )
    signed_properties = etree.SubElement(qualifying, _xades("SignedProperties"), Id=properties_id)
    signature_props = etree.SubElement(signed_properties, _xades("SignedSignatureProperties"))
    etree.SubElement(signature_props, _xades("SigningTime")).text = signing_time.isoformat()

    signing_cert = etree.SubElement(signature_props, _xades("SigningCertificate"))
    cert = etree.SubElement(signing_cert, _xades("Cert"))
    cert_digest = etree.SubElement(cert, _xades("CertDigest"))
    etree.SubElement(cert_digest, _ds("DigestMethod"), Algorithm=DIGEST_ALGORITHM)
    etree.SubElement(cert_digest, _ds("DigestValue")).text = _sha256_b64(context.certificate_der)

    issuer_serial = etree.SubElement(cert, _xades("IssuerSerial"))
    etree.SubElement(issuer_serial, _ds("X509IssuerName")).text = context.issuer
    etree.SubElement(issuer_serial, _ds("X509SerialNumber")).text = context.serial_number
    return signed_properties


def _find_de(root: etree._Element) -> etree._Element:
    de = root.find(f"{{{SIFEN_NS}}}DE")
    if de is None:
        de = root if etree.QName(root).localname == "DE" else None
    if de is None or not de.get("Id"):
        raise SigningError("El XML no contiene un nodo DE con atributo Id")
    return de


class SifenXMLSigner:
    """Firma documentos con el certificado del contribuyente."""

    def __init__(self, context: Optional[SigningContext] = None) -> None:
        self._context = context

    def ensure_context(self) -> SigningContext:
        if self._context is None:
            self._context = get_signing_context()
        return self._context

    def sign_document(self, xml_payload: str | bytes) -> DocumentoFirmado:
        context = self.ensure_context()
        root = _parse(xml_payload)
        de = _find_de(root)

        for old in root.findall(_ds("Signature")):
            root.remove(old)

        signature_id = f"Signature-{uuid.uuid4()}"
        properties_id = f"SignedProperties-{uuid.uuid4()}"

        signature = etree.Element(_ds("Signature"), nsmap={"ds": DS_NS}, Id=signature_id)
        parent = de.getparent()
        if parent is None:
            raise SigningError("El nodo DE debe estar contenido en rDE para la firma enveloped")
        parent.insert(parent.index(de) + 1, signature)

        signed_info = etree.SubElement(signature, _ds("SignedInfo"))
        etree.SubElement(signed_info, _ds("CanonicalizationMethod"), Algorithm=C14N_ALGORITHM)
        etree.SubElement(signed_info, _ds("SignatureMethod"), Algorithm=SIGNATURE_ALGORITHM)
        doc_reference = _add_reference(signed_info, f"#{de.get('Id')}", (ENVELOPED_TRANSFORM, C14N_ALGORITHM))
        props_reference = _add_reference(
            signed_info,
            f"#{properties_id}",
            (C14N_ALGORITHM,),
            ref_type=SIGNED_PROPERTIES_TYPE,
        )

        signature_value = etree.SubElement(signature, _ds("SignatureValue"))
        key_info = etree.SubElement(signature, _ds("KeyInfo"))
        x509_data = etree.SubElement(key_info, _ds("X509Data"))
        etree.SubElement(x509_data, _ds("X509Certificate")).text = base64.b64encode(
            context.certificate_der
        ).decode("ascii")

        ds_object = etree.SubElement(signature, _ds("Object"))
        signed_properties = _build_signed_properties(
            ds_object,
            context,
            signature_id,
            properties_id,
            timezone.localtime().replace(microsecond=0),
        )

        doc_digest = _sha256_b64(_c14n(de))
        doc_reference.find(_ds("DigestValue")).text = doc_digest
        props_reference.find(_ds("DigestValue")).text = _sha256_b64(_c14n(signed_properties))

        try:
            raw_signature = context.private_key.sign(_c14n(signed_info), padding.PKCS1v15(), hashes.SHA256())
        except (ValueError, TypeError) as exc:
            raise SigningError("Error al firmar el XML con el certificado SIFEN") from exc
        signature_value.text = base64.b64encode(raw_signature).decode("ascii")

        xml = etree.tostring(root, encoding="UTF-8", xml_declaration=True).decode("utf-8")
        return DocumentoFirmado(
            xml=xml,
            certificado=context.metadata(),
            signature_id=signature_id,
            digest_value=doc_digest,
        )


def verify_signed_xml(signed_xml: str | bytes, certificate: Optional[x509.Certificate] = None) -> bool:
    """Verifica la firma con ``signxml.XMLVerifier``.

    Si no se indica certificado se usa el incluido en ``KeyInfo``.
    """

    data = signed_xml.encode("utf-8") if isinstance(signed_xml, str) else signed_xml
    root = _parse(data)
    signature = root.find(f".//{_ds('Signature')}")
    if signature is None:
        return False

    if certificate is None:
        cert_text = signature.findtext(f"{_ds('KeyInfo')}/{_ds('X509Data')}/{_ds('X509Certificate')}")
        if not cert_text:
            return False
        certificate = x509.load_der_x509_certificate(base64.b64decode(cert_text))

    try:
        XMLVerifier().verify(
            data,
            x509_cert=certificate.public_bytes(serialization.Encoding.PEM).decode("ascii"),
            expect_references=2,
            id_attribute="Id",
        )
    except (InvalidXMLSignature, InvalidInput) as exc:
        logger.warning("SIFEN: firma inválida: %s", exc)
        return False
    return True


__all__ = [
    "DocumentoFirmado",
    "SifenXMLSigner",
    "SigningContext",
    "get_signing_context",
    "load_signing_context",
    "refresh_signing_context",
    "verify_signed_xml",
]
