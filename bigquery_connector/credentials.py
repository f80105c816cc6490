"""
Service account credential lifecycle: key loading, token exchange and refresh.
"""
import logging
from typing import Optional

import requests
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from google.auth import crypt
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from bigquery_connector.constants import GOOGLE_TOKEN_URI
from bigquery_connector.errors import AuthError, AuthFailureReason
from bigquery_connector.helpers import to_utc
from bigquery_connector.models import KeyFileSource, KeystoreSource

logger = logging.getLogger(__name__)


class Credential:
    """
    A bearer credential for one service identity. The wrapped google-auth
    credentials object is what authorizes the BigQuery client handle, so a
    refresh updates the handle's token in place.
    """

    def __init__(self, credentials, request):
        self.credentials = credentials
        self.request = request

    @property
    def access_token(self) -> Optional[str]:
        return self.credentials.token

    @property
    def expiry(self):
        # google-auth stores expiry as a naive UTC datetime
        if self.credentials.expiry is None:
            return None
        return to_utc(self.credentials.expiry)

    def close(self):
        session = getattr(self.request, 'session', None)
        if session is not None:
            session.close()


class CredentialManager:
    """
    Issues and refreshes access tokens for a service identity.

    Tokens are refreshed unconditionally on every call to refresh(); expiry is
    never consulted to skip a round trip.
    """

    def __init__(self, token_uri: str = GOOGLE_TOKEN_URI):
        self.token_uri = token_uri

    def establish(self, identity) -> Credential:
        """
        Loads the identity's private key, builds the token transport and
        performs the initial token exchange.

        Args:
            identity (ServiceIdentity): The service account to authenticate as.

        Returns:
            Credential: A credential holding a freshly exchanged access token.

        Raises:
            AuthError: With reason KEY_LOAD_FAILURE, TRANSPORT_INIT_FAILURE or
                TOKEN_EXCHANGE_FAILURE, wrapping the underlying error.
        """
        logger.info(f'Establishing credential for {identity.service_account_email} '
                    f'({identity.application_name})')
        credentials = self._load_credentials(identity)
        request = self._build_request()
        credential = Credential(credentials, request)
        try:
            self.refresh(credential)
        except AuthError:
            credential.close()
            raise
        return credential

    def refresh(self, credential: Credential) -> None:
        """
        Exchanges a new signed assertion for an access token, replacing the
        credential's current token and expiry.
        """
        try:
            credential.credentials.refresh(credential.request)
        except GoogleAuthError as e:
            logger.error(f'Error exchanging token at {self.token_uri}: {e}')
            raise AuthError(AuthFailureReason.TOKEN_EXCHANGE_FAILURE, e) from e
        logger.debug(f'Access token refreshed, expires at {credential.expiry}')

    @staticmethod
    def is_live(session) -> bool:
        return session.is_open()

    @staticmethod
    def current_token(credential: Credential) -> Optional[str]:
        return credential.access_token

    def _build_request(self):
        try:
            return Request(session=requests.Session())
        except (GoogleAuthError, requests.exceptions.RequestException, OSError) as e:
            logger.error(f'Error creating token transport: {e}')
            raise AuthError(AuthFailureReason.TRANSPORT_INIT_FAILURE, e) from e

    def _load_credentials(self, identity):
        source = identity.private_key_source
        try:
            if isinstance(source, KeyFileSource) and source.is_json:
                return self._credentials_from_json_file(identity, source)
            if isinstance(source, KeystoreSource):
                private_key = self._load_keystore_key(source)
            else:
                private_key = self._load_pem_key(source)
            return self._credentials_from_key(identity, private_key)
        except (OSError, ValueError, TypeError, UnsupportedAlgorithm, GoogleAuthError) as e:
            logger.error(f'Error loading private key from {source.path}: {e}')
            raise AuthError(AuthFailureReason.KEY_LOAD_FAILURE, e) from e

    def _credentials_from_json_file(self, identity, source):
        credentials = service_account.Credentials.from_service_account_file(
            source.path, scopes=sorted(identity.scopes)
        )
        if credentials.service_account_email != identity.service_account_email:
            raise ValueError(f'Key file {source.path} belongs to {credentials.service_account_email}, '
                             f'not {identity.service_account_email}')
        return credentials

    def _credentials_from_key(self, identity, private_key):
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise ValueError(f'Service account keys must be RSA, got {type(private_key).__name__}')
        pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        signer = crypt.RSASigner.from_string(pem)
        return service_account.Credentials(
            signer,
            identity.service_account_email,
            self.token_uri,
            scopes=sorted(identity.scopes),
            project_id=identity.project_id,
        )

    def _load_keystore_key(self, source):
        with open(source.path, 'rb') as keystore_file:
            data = keystore_file.read()
        try:
            bundle = pkcs12.load_pkcs12(data, source.store_password.encode())
        except ValueError:
            # PKCS#12 bags are decrypted with a single password
            if source.key_password == source.store_password:
                raise
            bundle = pkcs12.load_pkcs12(data, source.key_password.encode())

        if bundle.key is None:
            raise ValueError(f'Keystore {source.path} holds no private key')
        friendly_name = bundle.cert.friendly_name if bundle.cert is not None else None
        if friendly_name is not None and friendly_name.decode() != source.alias:
            raise ValueError(f'No key entry with alias {source.alias!r} in keystore {source.path}')
        return bundle.key

    def _load_pem_key(self, source):
        with open(source.path, 'rb') as key_file:
            data = key_file.read()
        password = source.key_password.encode() if source.key_password else None
        return serialization.load_pem_private_key(data, password=password)
