"""Fixtures compartidas por las pruebas de facturación electrónica."""

from __future__ import annotations

import datetime as dt

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import BestAvailableEncryption, pkcs12
from cryptography.x509.oid import NameOID

from ventas.sifen.config import (
    ActividadEconomica,
    Emisor,
    Establecimiento,
    Timbrado,
    Ubicacion,
)
from ventas.sifen.signer import SigningContext

CERT_SERIAL = 987654321


def make_emisor(**overrides) -> Emisor:
    ubicacion = Ubicacion(
        departamento_codigo=7,
        departamento="ITAPUA",
        distrito_codigo=143,
        distrito="DOMINGO MARTINEZ DE IRALA",
        ciudad_codigo=3432,
        ciudad="SAN IGNACIO",
    )
    params = {
        "version": 150,
        "ruc": "80132959-0",
        "razon_social": "TRIDENT INNOVA E.A.S",
        "nombre_fantasia": "TRIDENT INNOVA",
        "tipo_contribuyente": 2,
        "tipo_regimen": 8,
        "actividades": (ActividadEconomica("62010", "Desarrollo de software"),),
        "establecimiento": Establecimiento(
            codigo="001",
            punto_expedicion="001",
            direccion="Avda. Irala",
            numero_casa="0",
            ubicacion=ubicacion,
            telefono="0981000000",
            email="facturacion@tridentinnova.com.py",
            denominacion="Casa Central",
        ),
    }
    params.update(overrides)
    return Emisor(**params)


def make_timbrado(**overrides) -> Timbrado:
    params = {
        "numero": "12345678",
        "vigencia_inicio": dt.date(2024, 5, 1),
        "vigencia_fin": dt.date(2030, 12, 31),
        "establecimiento": "001",
        "punto_expedicion": "001",
    }
    params.update(overrides)
    return Timbrado(**params)


def make_certificate() -> tuple[rsa.RSAPrivateKey, x509.Certificate]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "PY"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "TRIDENT INNOVA E.A.S"),
            x509.NameAttribute(NameOID.COMMON_NAME, "80132959-0"),
        ]
    )
    issuer = x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "PY"),
            x509.NameAttribute(NameOID.COMMON_NAME, "CA de Pruebas"),
        ]
    )
    now = dt.datetime.now(dt.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(CERT_SERIAL)
        .not_valid_before(now - dt.timedelta(days=1))
        .not_valid_after(now + dt.timedelta(days=365))
        .sign(key, hashes.SHA256())
    )
    return key, certificate


def make_signing_context() -> SigningContext:
    key, certificate = make_certificate()
    return SigningContext(private_key=key, certificate=certificate)


def write_pkcs12(path, password: str) -> x509.Certificate:
    key, certificate = make_certificate()
    data = pkcs12.serialize_key_and_certificates(
        b"sifen",
        key,
        certificate,
        None,
        BestAvailableEncryption(password.encode("utf-8")),
    )
    with open(path, "wb") as fh:
        fh.write(data)
    return certificate
