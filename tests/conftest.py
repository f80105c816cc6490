import datetime
import itertools
import json

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID
from google.oauth2 import service_account

from bigquery_connector.clients.google_client import GoogleWarehouseClient
from bigquery_connector.constants import GOOGLE_TOKEN_URI
from bigquery_connector.credentials import Credential, CredentialManager
from bigquery_connector.models import KeyFileSource, ServiceIdentity
from bigquery_connector.session import Session

SERVICE_ACCOUNT_EMAIL = 'exporter@fake-project.iam.gserviceaccount.com'


@pytest.fixture(scope='session')
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def pem_key_file_factory(tmp_path, rsa_private_key):
    def _factory(password=None, name='key.pem'):
        encryption = serialization.BestAvailableEncryption(password.encode()) if password \
            else serialization.NoEncryption()
        path = tmp_path / name
        path.write_bytes(rsa_private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=encryption,
        ))
        return str(path)
    return _factory


@pytest.fixture
def keystore_file_factory(tmp_path, rsa_private_key):
    def _factory(password='notasecret', alias='privatekey', name='key.p12'):
        subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, SERVICE_ACCOUNT_EMAIL)])
        now = datetime.datetime.now(datetime.timezone.utc)
        cert = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(rsa_private_key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now)
            .not_valid_after(now + datetime.timedelta(days=1))
            .sign(rsa_private_key, hashes.SHA256())
        )
        path = tmp_path / name
        path.write_bytes(pkcs12.serialize_key_and_certificates(
            alias.encode(),
            rsa_private_key,
            cert,
            None,
            serialization.BestAvailableEncryption(password.encode()),
        ))
        return str(path)
    return _factory


@pytest.fixture
def json_key_file_factory(tmp_path, rsa_private_key):
    def _factory(client_email=SERVICE_ACCOUNT_EMAIL, project_id='fake-project'):
        pem = rsa_private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        path = tmp_path / 'service-account.json'
        path.write_text(json.dumps({
            'type': 'service_account',
            'project_id': project_id,
            'private_key_id': 'fake-key-id',
            'private_key': pem.decode(),
            'client_email': client_email,
            'client_id': '1234567890',
            'token_uri': GOOGLE_TOKEN_URI,
        }))
        return str(path)
    return _factory


@pytest.fixture
def identity_factory():
    def _factory(source=None, project_id='fake-project', email=SERVICE_ACCOUNT_EMAIL):
        return ServiceIdentity(
            application_name='test-app',
            service_account_email=email,
            private_key_source=source or KeyFileSource('/path/to/fake-key.pem'),
            project_id=project_id,
        )
    return _factory


@pytest.fixture
def credential_factory(mocker):
    def _factory(token='token-0', project_id='fake-project'):
        google_credentials = mocker.MagicMock(spec=service_account.Credentials)
        google_credentials.token = token
        google_credentials.expiry = None
        google_credentials.project_id = project_id
        return Credential(google_credentials, mocker.MagicMock())
    return _factory


@pytest.fixture
def credential_manager(mocker, credential_factory):
    """
    A CredentialManager whose establish() returns a mocked credential and whose
    refresh() swaps in a new token on every call.
    """
    manager = CredentialManager()
    tokens = itertools.count(1)

    def _refresh(credential):
        credential.credentials.token = f'token-{next(tokens)}'

    mocker.patch.object(manager, 'establish', return_value=credential_factory())
    mocker.patch.object(manager, 'refresh', side_effect=_refresh)
    return manager


@pytest.fixture
def mock_bq_client_class(mocker):
    return mocker.patch('bigquery_connector.session.bigquery.Client')


@pytest.fixture
def mock_bq_client(mock_bq_client_class):
    return mock_bq_client_class.return_value


@pytest.fixture
def session(identity_factory, credential_manager, mock_bq_client_class):
    return Session(identity_factory(), credential_manager=credential_manager)


@pytest.fixture
def warehouse_client(session):
    client = GoogleWarehouseClient(session=session)
    client.connect()
    return client
