"""
Typed values passed across the connector boundary.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from bigquery_connector.constants import (
    BQ_FIELD_MODES,
    BQ_FIELD_TYPES,
    BQ_RANGE_ELEMENT_TYPES,
    CREATE_DISPOSITIONS,
    DEFAULT_KEYSTORE_ALIAS,
    DEFAULT_KEYSTORE_PASSWORD,
    DEFAULT_SCOPES,
    WRITE_DISPOSITIONS,
)
from bigquery_connector.errors import WarehouseValidationError


def _require(value, name):
    if not isinstance(value, str) or not value:
        raise WarehouseValidationError(f'{name} must be a non-empty string, got {value!r}')


@dataclass(frozen=True)
class KeystoreSource:
    """
    A PKCS#12 keystore holding the service account's private key.
    """
    path: str
    store_password: str = DEFAULT_KEYSTORE_PASSWORD
    alias: str = DEFAULT_KEYSTORE_ALIAS
    key_password: str = DEFAULT_KEYSTORE_PASSWORD

    def __post_init__(self):
        _require(self.path, 'path')
        _require(self.store_password, 'store_password')
        _require(self.alias, 'alias')
        _require(self.key_password, 'key_password')


@dataclass(frozen=True)
class KeyFileSource:
    """
    A standalone key file: a JSON service account key or a PEM private key.
    """
    path: str
    key_password: Optional[str] = None

    def __post_init__(self):
        _require(self.path, 'path')

    @property
    def is_json(self) -> bool:
        return self.path.lower().endswith('.json')


PrivateKeySource = Union[KeystoreSource, KeyFileSource]


@dataclass(frozen=True)
class ServiceIdentity:
    application_name: str
    service_account_email: str
    private_key_source: PrivateKeySource
    scopes: FrozenSet[str] = DEFAULT_SCOPES
    project_id: Optional[str] = None

    def __post_init__(self):
        _require(self.application_name, 'application_name')
        _require(self.service_account_email, 'service_account_email')
        if not isinstance(self.private_key_source, (KeystoreSource, KeyFileSource)):
            raise WarehouseValidationError(
                f'Unsupported private key source type: "{type(self.private_key_source).__name__}"'
            )
        if not self.scopes:
            raise WarehouseValidationError('At least one scope is required')
        object.__setattr__(self, 'scopes', frozenset(self.scopes))


@dataclass(frozen=True)
class DatasetReference:
    project_id: str
    dataset_id: str

    def __post_init__(self):
        _require(self.project_id, 'project_id')
        _require(self.dataset_id, 'dataset_id')

    def __str__(self):
        return f'{self.project_id}.{self.dataset_id}'


@dataclass(frozen=True)
class TableReference:
    project_id: str
    dataset_id: str
    table_id: str

    def __post_init__(self):
        _require(self.project_id, 'project_id')
        _require(self.dataset_id, 'dataset_id')
        _require(self.table_id, 'table_id')

    @property
    def dataset(self) -> DatasetReference:
        return DatasetReference(self.project_id, self.dataset_id)

    def __str__(self):
        return f'{self.project_id}.{self.dataset_id}.{self.table_id}'


@dataclass(frozen=True)
class InsertRow:
    json: Mapping[str, Any]
    insert_id: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.json, Mapping):
            raise WarehouseValidationError(
                f'Row payload must be a mapping, got {type(self.json).__name__}'
            )
        if self.insert_id is not None:
            _require(self.insert_id, 'insert_id')


@dataclass(frozen=True)
class InsertOptions:
    skip_invalid_rows: Optional[bool] = None
    ignore_unknown_values: Optional[bool] = None
    create_disposition: Optional[str] = None
    write_disposition: Optional[str] = None
    template_suffix: Optional[str] = None

    def __post_init__(self):
        if self.create_disposition is not None and self.create_disposition not in CREATE_DISPOSITIONS:
            raise WarehouseValidationError(f'Invalid create disposition {self.create_disposition!r}')
        if self.write_disposition is not None and self.write_disposition not in WRITE_DISPOSITIONS:
            raise WarehouseValidationError(f'Invalid write disposition {self.write_disposition!r}')


@dataclass(frozen=True)
class RowError:
    index: int
    reasons: Tuple[Dict[str, Any], ...]


@dataclass(frozen=True)
class InsertOutcome:
    """
    Result of a streaming insert. An empty per_row_errors means every row of
    the batch was accepted; otherwise each entry indexes into the batch.
    """
    raw_response: List[Dict[str, Any]]
    per_row_errors: Tuple[RowError, ...] = ()

    @property
    def accepted(self) -> bool:
        return not self.per_row_errors

    @property
    def rejected_indices(self) -> List[int]:
        return [error.index for error in self.per_row_errors]


@dataclass(frozen=True)
class FieldDescriptor:
    """
    A table column. Descriptors read back from a table schema are taken as the
    service reports them; validate() checks descriptors before a table is
    created from them.
    """
    name: str
    type: str
    mode: str = 'NULLABLE'
    description: Optional[str] = None
    fields: Tuple['FieldDescriptor', ...] = ()
    range_element_type: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'type', str(self.type).upper())
        object.__setattr__(self, 'mode', str(self.mode).upper())
        object.__setattr__(self, 'fields', tuple(self.fields))
        if self.range_element_type is not None:
            object.__setattr__(self, 'range_element_type', str(self.range_element_type).upper())

    def validate(self):
        _require(self.name, 'name')
        if self.type not in BQ_FIELD_TYPES:
            raise WarehouseValidationError(f'Invalid type {self.type!r} for field {self.name}')
        if self.mode not in BQ_FIELD_MODES:
            raise WarehouseValidationError(f'Invalid mode {self.mode!r} for field {self.name}')
        if self.fields and self.type not in ('RECORD', 'STRUCT'):
            raise WarehouseValidationError(f'Only RECORD fields can have subfields, {self.name} is {self.type}')
        if self.type == 'RANGE':
            if self.range_element_type not in BQ_RANGE_ELEMENT_TYPES:
                raise WarehouseValidationError(
                    f'RANGE field {self.name} needs an element type, one of {sorted(BQ_RANGE_ELEMENT_TYPES)}'
                )
        elif self.range_element_type is not None:
            raise WarehouseValidationError(f'Only RANGE fields have an element type, {self.name} is {self.type}')
        for subfield in self.fields:
            subfield.validate()


@dataclass(frozen=True)
class TableSummary:
    project_id: str
    dataset_id: str
    table_id: str
    table_type: Optional[str] = None


@dataclass(frozen=True)
class DatasetSummary:
    project_id: str
    dataset_id: str
    friendly_name: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProjectSummary:
    project_id: str
    friendly_name: Optional[str] = None
    numeric_id: Optional[str] = None


@dataclass(frozen=True)
class ResultPage:
    items: List[Any]
    next_page_token: Optional[str] = None
