"""Configuración principal para el proyecto TridentPOS."""

from pathlib import Path
import os

import dj_database_url


# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent
MEDIA_DIR = BASE_DIR / "media"


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-dev-secret-change-me")

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.environ.get("DJANGO_DEBUG", "True").lower() in {"1", "true", "yes"}

ALLOWED_HOSTS = [host for host in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if host]

CSRF_TRUSTED_ORIGINS = [origin for origin in os.environ.get("DJANGO_CSRF_TRUSTED_ORIGINS", "").split(",") if origin]


# Application definition

INSTALLED_APPS = [
    # Django apps
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    # Local apps
    'ventas.apps.VentasConfig',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'TridentPOS.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'TridentPOS.wsgi.application'


# Database
# https://docs.djangoproject.com/en/5.2/ref/settings/#databases

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}

DATABASE_URL = os.environ.get("DATABASE_URL")
if DATABASE_URL:
    DATABASES['default'] = dj_database_url.config(
        default=DATABASE_URL,
        conn_max_age=600,
        ssl_require=True,
    )


# Password validation
# https://docs.djangoproject.com/en/5.2/ref/settings/#auth-password-validators

AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

LOGIN_URL = 'admin:login'


# Internationalization
# https://docs.djangoproject.com/en/5.2/topics/i18n/

LANGUAGE_CODE = 'es-py'

TIME_ZONE = 'America/Asuncion'

USE_I18N = True

USE_TZ = True


# Static files (CSS, JavaScript, Images)
# https://docs.djangoproject.com/en/5.2/howto/static-files/

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'whitenoise.storage.CompressedManifestStaticFilesStorage'},
}

SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

MEDIA_URL = 'media/'
MEDIA_ROOT = MEDIA_DIR

# Default primary key field type
# https://docs.djangoproject.com/en/5.2/ref/settings/#default-auto-field

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# Logging

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {'format': '[{asctime}] {levelname} {name}: {message}', 'style': '{'},
    },
    'handlers': {
        'console': {'class': 'logging.StreamHandler', 'formatter': 'simple'},
    },
    'loggers': {
        'ventas': {
            'handlers': ['console'],
            'level': os.environ.get('DJANGO_LOG_LEVEL', 'INFO'),
        },
    },
}


# Facturación electrónica SIFEN

SIFEN_AMBIENTE = os.environ.get("SIFEN_AMBIENTE", "certificacion")
SIFEN_VERSION = os.environ.get("SIFEN_VERSION", "150")

SIFEN_ENDPOINT_DE_CERT = os.environ.get(
    "SIFEN_ENDPOINT_DE_CERT", "https://sifen-test.set.gov.py/de/ws/deRecepcionDE.php"
)
SIFEN_ENDPOINT_DE_PROD = os.environ.get(
    "SIFEN_ENDPOINT_DE_PROD", "https://sifen.set.gov.py/de/ws/deRecepcionDE.php"
)
SIFEN_ENDPOINT_CONSULTA_CERT = os.environ.get(
    "SIFEN_ENDPOINT_CONSULTA_CERT", "https://sifen-test.set.gov.py/de/ws/consultasDE.php"
)
SIFEN_ENDPOINT_CONSULTA_PROD = os.environ.get(
    "SIFEN_ENDPOINT_CONSULTA_PROD", "https://sifen.set.gov.py/de/ws/consultasDE.php"
)
SIFEN_TIMEOUT = os.environ.get("SIFEN_TIMEOUT", "15")

SIFEN_CERT_PATH = os.environ.get("SIFEN_CERT_PATH", "")
SIFEN_CERT_PASS = os.environ.get("SIFEN_CERT_PASS", "")
SIFEN_CSC = os.environ.get("SIFEN_CSC", "")
SIFEN_CSC_ID = os.environ.get("SIFEN_CSC_ID", "0001")

SIFEN_RUC = os.environ.get("SIFEN_RUC", "80132959-0")
SIFEN_RAZON_SOCIAL = os.environ.get("SIFEN_RAZON_SOCIAL", "TRIDENT INNOVA E.A.S")
SIFEN_NOMBRE_FANTASIA = os.environ.get("SIFEN_NOMBRE_FANTASIA", "TRIDENT INNOVA")
SIFEN_TIPO_CONTRIBUYENTE = os.environ.get("SIFEN_TIPO_CONTRIBUYENTE", "2")
SIFEN_TIPO_REGIMEN = os.environ.get("SIFEN_TIPO_REGIMEN", "8")
SIFEN_ACTIVIDAD_CODIGO = os.environ.get("SIFEN_ACTIVIDAD_CODIGO", "62010")
SIFEN_ACTIVIDAD_DESCRIPCION = os.environ.get("SIFEN_ACTIVIDAD_DESCRIPCION", "Desarrollo de software")

SIFEN_ESTABLECIMIENTO = os.environ.get("SIFEN_ESTABLECIMIENTO", "001")
SIFEN_PUNTO_EXPEDICION = os.environ.get("SIFEN_PUNTO_EXPEDICION", "001")
SIFEN_DIRECCION = os.environ.get("SIFEN_DIRECCION", "Avda. Irala")
SIFEN_NUMERO_CASA = os.environ.get("SIFEN_NUMERO_CASA", "0")
SIFEN_DEPARTAMENTO_CODIGO = os.environ.get("SIFEN_DEPARTAMENTO_CODIGO", "7")
SIFEN_DEPARTAMENTO = os.environ.get("SIFEN_DEPARTAMENTO", "ITAPUA")
SIFEN_DISTRITO_CODIGO = os.environ.get("SIFEN_DISTRITO_CODIGO", "143")
SIFEN_DISTRITO = os.environ.get("SIFEN_DISTRITO", "DOMINGO MARTINEZ DE IRALA")
SIFEN_CIUDAD_CODIGO = os.environ.get("SIFEN_CIUDAD_CODIGO", "3432")
SIFEN_CIUDAD = os.environ.get("SIFEN_CIUDAD", "SAN IGNACIO")
SIFEN_TELEFONO = os.environ.get("SIFEN_TELEFONO", "0981000000")
SIFEN_EMAIL = os.environ.get("SIFEN_EMAIL", "facturacion@tridentinnova.com.py")
SIFEN_DENOMINACION_SUCURSAL = os.environ.get("SIFEN_DENOMINACION_SUCURSAL", "Casa Central")

SIFEN_TIMBRADO = os.environ.get("SIFEN_TIMBRADO", "")
SIFEN_TIMBRADO_INICIO = os.environ.get("SIFEN_TIMBRADO_INICIO", "")
SIFEN_TIMBRADO_FIN = os.environ.get("SIFEN_TIMBRADO_FIN", "")

SIFEN_IVA_DEFECTO = os.environ.get("SIFEN_IVA_DEFECTO", "10")
SIFEN_MAX_INTENTOS = os.environ.get("SIFEN_MAX_INTENTOS", "5")

SIFEN_STORAGE_DIR = os.environ.get("SIFEN_STORAGE_DIR", str(MEDIA_DIR / "facturas_digitales"))
SIFEN_GEO_DATA_FILE = os.environ.get("SIFEN_GEO_DATA_FILE", "")
