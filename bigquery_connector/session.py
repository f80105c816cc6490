"""
Connection state for one service identity.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Optional

from google.api_core.client_info import ClientInfo
from google.api_core.exceptions import GoogleAPICallError
from google.auth.exceptions import GoogleAuthError
from google.cloud import bigquery

from bigquery_connector.credentials import Credential, CredentialManager
from bigquery_connector.errors import AuthError, AuthFailureReason, NotConnectedError

logger = logging.getLogger(__name__)


class Session:
    """
    Holds the credential and BigQuery client handle for one service identity.

    A session is open iff it holds a client handle. Calls made through
    authorized() are serialized, so a refresh and the request that follows it
    never interleave with another call on the same session.
    """

    def __init__(self, identity, credential_manager: Optional[CredentialManager] = None):
        self.identity = identity
        self.credential_manager = credential_manager or CredentialManager()
        self.credential: Optional[Credential] = None
        self.client: Optional[bigquery.Client] = None
        self._lock = threading.Lock()

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def open(self):
        """
        Establishes a credential and builds the BigQuery client handle.

        Raises:
            AuthError: If the credential cannot be established or the client
                cannot be created. The session stays closed.
        """
        with self._lock:
            if self.client is not None:
                return
            credential = self.credential_manager.establish(self.identity)
            try:
                client = bigquery.Client(
                    project=self.identity.project_id or credential.credentials.project_id,
                    credentials=credential.credentials,
                    client_info=ClientInfo(user_agent=self.identity.application_name),
                )
            except (GoogleAPICallError, GoogleAuthError, OSError, ValueError) as e:
                logger.error(f'Error creating BigQuery client for {self.identity.application_name}: {e}')
                credential.close()
                raise AuthError(AuthFailureReason.TRANSPORT_INIT_FAILURE, e) from e
            self.credential = credential
            self.client = client
            logger.info(f'BigQuery client created for {self.identity.application_name} '
                        f'(project {client.project})')

    def close(self):
        with self._lock:
            self._drop()

    def is_open(self) -> bool:
        return self.client is not None

    def connection_id(self) -> str:
        credential = self.credential
        if credential is None:
            raise NotConnectedError(f'Session for {self.identity.application_name} is not open')
        return self.credential_manager.current_token(credential)

    @contextmanager
    def authorized(self):
        """
        Yields the client handle with a freshly refreshed token.

        Raises:
            NotConnectedError: If the session is not open. No network call is made.
            AuthError: If the token refresh fails. The session is closed.
        """
        with self._lock:
            if self.client is None:
                raise NotConnectedError(f'Session for {self.identity.application_name} is not open')
            try:
                self.credential_manager.refresh(self.credential)
            except AuthError:
                logger.error(f'Token refresh failed, closing session for {self.identity.application_name}')
                self._drop()
                raise
            yield self.client

    def _drop(self):
        if self.client is not None:
            self.client.close()
            logger.info(f'BigQuery client closed for {self.identity.application_name}')
        if self.credential is not None:
            self.credential.close()
        self.client = None
        self.credential = None
