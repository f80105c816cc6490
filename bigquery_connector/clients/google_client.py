"""
Google Cloud BigQuery warehouse client implementation
"""
import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

from google.api_core.exceptions import GoogleAPIError
from google.api_core.retry import Retry
from google.cloud import bigquery
from requests.exceptions import RequestException

from bigquery_connector.clients.interface import WarehouseClientInterface
from bigquery_connector.constants import STREAMING_CREATE_DISPOSITIONS, STREAMING_WRITE_DISPOSITIONS
from bigquery_connector.errors import OperationError, WarehouseValidationError
from bigquery_connector.helpers import assign_insert_ids, sanitize_value
from bigquery_connector.models import (
    DatasetReference,
    DatasetSummary,
    FieldDescriptor,
    InsertOptions,
    InsertOutcome,
    InsertRow,
    ProjectSummary,
    ResultPage,
    RowError,
    TableReference,
    TableSummary,
)
from bigquery_connector.session import Session


logger = logging.getLogger(__name__)


def _dataset_ref(dataset: DatasetReference) -> bigquery.DatasetReference:
    return bigquery.DatasetReference(dataset.project_id, dataset.dataset_id)


def _table_ref(table: TableReference) -> bigquery.TableReference:
    return bigquery.TableReference(_dataset_ref(table.dataset), table.table_id)


def _schema_field(descriptor: FieldDescriptor) -> bigquery.SchemaField:
    return bigquery.SchemaField(
        descriptor.name,
        descriptor.type,
        mode=descriptor.mode,
        description=descriptor.description,
        fields=[_schema_field(subfield) for subfield in descriptor.fields],
        range_element_type=descriptor.range_element_type,
    )


def _field_descriptor(schema_field: bigquery.SchemaField) -> FieldDescriptor:
    range_element = schema_field.range_element_type
    return FieldDescriptor(
        name=schema_field.name,
        type=schema_field.field_type,
        mode=schema_field.mode,
        description=schema_field.description,
        fields=tuple(_field_descriptor(subfield) for subfield in schema_field.fields),
        range_element_type=range_element.element_type if range_element is not None else None,
    )


def _first_page(iterator, convert) -> ResultPage:
    page = next(iterator.pages, None)
    items = [convert(item) for item in page] if page is not None else []
    return ResultPage(items=items, next_page_token=iterator.next_page_token)


class GoogleWarehouseClient(WarehouseClientInterface):
    """
    Implementation of WarehouseClientInterface that uses the Google Cloud BigQuery client.

    Every operation refreshes the session's token before running exactly one
    BigQuery call. Nothing is retried unless a retry policy is passed in.
    """

    def __init__(self, identity=None, session: Optional[Session] = None,
                 retry: Optional[Retry] = None, timeout: Optional[float] = None):
        """
        Initialize a GoogleWarehouseClient.

        Args:
            identity: The ServiceIdentity to connect as. Ignored if session is given.
            session: An existing Session to run operations through.
            retry: A retry object applied to every BigQuery call. None disables retries.
            timeout: Transport deadline in seconds for every BigQuery call.
        """
        if session is None:
            if identity is None:
                raise ValueError('Either identity or session is required')
            session = Session(identity)
        self.session = session
        self.retry = retry
        self.timeout = timeout

    def connect(self) -> None:
        logger.info(f'Logging into BigQuery application {self.session.identity.application_name}')
        self.session.open()

    def disconnect(self) -> None:
        self.session.close()

    def is_connected(self) -> bool:
        return self.session.credential_manager.is_live(self.session)

    def connection_id(self) -> str:
        return self.session.connection_id()

    def insert_rows(self, table: TableReference, rows: Sequence[InsertRow],
                    options: Optional[InsertOptions] = None, throttle: float = 0.0) -> InsertOutcome:
        """
        Streams rows into a table.

        Rows without an insert id get a unique synthesized one so the service
        can deduplicate redelivered rows. The service may accept a subset of
        the batch; rejected rows are reported in the outcome, not raised.

        Args:
            table: The table to insert rows into.
            rows: The rows to insert, in order.
            options: Insert flags forwarded to the streaming API.
            throttle: Seconds to pause on the calling thread before the call.

        Returns:
            An InsertOutcome whose per_row_errors index into rows.

        Raises:
            WarehouseValidationError: If the options ask for a disposition the
                streaming API cannot honour, or throttle is negative.
            NotConnectedError: If the client is not connected.
            OperationError: If the BigQuery call fails.
        """
        options = options or InsertOptions()
        self._validate_streaming_options(options)
        if throttle < 0:
            raise WarehouseValidationError(f'throttle must not be negative, got {throttle}')

        json_rows = [sanitize_value(dict(row.json)) for row in rows]
        row_ids = assign_insert_ids(rows)

        if throttle:
            logger.debug(f'Throttling insert into {table} for {throttle}s')
            time.sleep(throttle)

        with self._operation('insert_rows', table) as client:
            logger.debug(f'Inserting {len(json_rows)} rows into {table}')
            errors = client.insert_rows_json(
                _table_ref(table),
                json_rows,
                row_ids=row_ids,
                skip_invalid_rows=options.skip_invalid_rows,
                ignore_unknown_values=options.ignore_unknown_values,
                template_suffix=options.template_suffix,
                retry=self.retry,
                timeout=self.timeout,
            )

        per_row_errors = tuple(
            RowError(index=error['index'], reasons=tuple(error.get('errors', ())))
            for error in errors
        )
        if per_row_errors:
            logger.warning(f'{len(per_row_errors)} of {len(json_rows)} rows rejected by {table}: {errors}')
        return InsertOutcome(raw_response=errors, per_row_errors=per_row_errors)

    def list_rows(self, table: TableReference, max_results: Optional[int] = None) -> List[Dict[str, Any]]:
        return self.list_rows_page(table, max_results=max_results).items

    def list_rows_page(self, table: TableReference, max_results: Optional[int] = None,
                       page_token: Optional[str] = None) -> ResultPage:
        with self._operation('list_rows', table) as client:
            iterator = client.list_rows(
                _table_ref(table),
                max_results=max_results,
                page_token=page_token,
                retry=self.retry,
                timeout=self.timeout,
            )
            return _first_page(iterator, lambda row: dict(row.items()))

    def list_tables(self, dataset: DatasetReference, max_results: Optional[int] = None) -> List[TableSummary]:
        return self.list_tables_page(dataset, max_results=max_results).items

    def list_tables_page(self, dataset: DatasetReference, max_results: Optional[int] = None,
                         page_token: Optional[str] = None) -> ResultPage:
        with self._operation('list_tables', dataset) as client:
            iterator = client.list_tables(
                _dataset_ref(dataset),
                max_results=max_results,
                page_token=page_token,
                retry=self.retry,
                timeout=self.timeout,
            )
            return _first_page(iterator, lambda item: TableSummary(
                project_id=item.project,
                dataset_id=item.dataset_id,
                table_id=item.table_id,
                table_type=item.table_type,
            ))

    def list_datasets(self, project_id: str, max_results: Optional[int] = None) -> List[DatasetSummary]:
        return self.list_datasets_page(project_id, max_results=max_results).items

    def list_datasets_page(self, project_id: str, max_results: Optional[int] = None,
                           page_token: Optional[str] = None) -> ResultPage:
        if not project_id:
            raise WarehouseValidationError('project_id must be a non-empty string')
        with self._operation('list_datasets', project_id) as client:
            iterator = client.list_datasets(
                project=project_id,
                max_results=max_results,
                page_token=page_token,
                retry=self.retry,
                timeout=self.timeout,
            )
            return _first_page(iterator, lambda item: DatasetSummary(
                project_id=item.project,
                dataset_id=item.dataset_id,
                friendly_name=item.friendly_name,
                labels=dict(item.labels or {}),
            ))

    def list_projects(self, max_results: Optional[int] = None) -> List[ProjectSummary]:
        return self.list_projects_page(max_results=max_results).items

    def list_projects_page(self, max_results: Optional[int] = None,
                           page_token: Optional[str] = None) -> ResultPage:
        with self._operation('list_projects', 'projects') as client:
            iterator = client.list_projects(
                max_results=max_results,
                page_token=page_token,
                retry=self.retry,
                timeout=self.timeout,
            )
            return _first_page(iterator, lambda item: ProjectSummary(
                project_id=item.project_id,
                friendly_name=item.friendly_name,
                numeric_id=item.numeric_id,
            ))

    def list_table_fields(self, table: TableReference) -> List[FieldDescriptor]:
        with self._operation('list_table_fields', table) as client:
            bq_table = client.get_table(_table_ref(table), retry=self.retry, timeout=self.timeout)
        return [_field_descriptor(schema_field) for schema_field in bq_table.schema]

    def create_table(self, table: TableReference, fields: Sequence[FieldDescriptor]) -> None:
        if not fields:
            raise WarehouseValidationError(f'At least one field is required to create {table}')
        for descriptor in fields:
            descriptor.validate()
        bq_table = bigquery.Table(_table_ref(table), schema=[_schema_field(descriptor) for descriptor in fields])
        with self._operation('create_table', table) as client:
            client.create_table(bq_table, exists_ok=False, retry=self.retry, timeout=self.timeout)
        logger.info(f'Created table {table} with {len(fields)} fields')

    def delete_table(self, table: TableReference) -> None:
        with self._operation('delete_table', table) as client:
            client.delete_table(_table_ref(table), not_found_ok=False, retry=self.retry, timeout=self.timeout)
        logger.info(f'Deleted table {table}')

    @contextmanager
    def _operation(self, operation, target):
        with self.session.authorized() as client:
            try:
                yield client
            except (GoogleAPIError, RequestException) as e:
                logger.error(f'Error running {operation} on {target}: {e}')
                raise OperationError(operation, target, e) from e

    @staticmethod
    def _validate_streaming_options(options: InsertOptions):
        if options.create_disposition is not None and \
                options.create_disposition not in STREAMING_CREATE_DISPOSITIONS:
            raise WarehouseValidationError(
                f'Streaming inserts cannot use create disposition {options.create_disposition}'
            )
        if options.write_disposition is not None and \
                options.write_disposition not in STREAMING_WRITE_DISPOSITIONS:
            raise WarehouseValidationError(
                f'Streaming inserts cannot use write disposition {options.write_disposition}'
            )
