"""
Interfaces for BigQuery warehouse clients
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from bigquery_connector.models import (
    DatasetReference,
    DatasetSummary,
    FieldDescriptor,
    InsertOptions,
    InsertOutcome,
    InsertRow,
    ProjectSummary,
    TableReference,
    TableSummary,
)


class WarehouseClientInterface(ABC):
    """
    Interface for warehouse clients.
    This defines the contract that all warehouse client implementations must follow.
    """

    @abstractmethod
    def connect(self) -> None:
        pass

    @abstractmethod
    def disconnect(self) -> None:
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        pass

    @abstractmethod
    def connection_id(self) -> str:
        pass

    @abstractmethod
    def insert_rows(self, table: TableReference, rows: Sequence[InsertRow],
                    options: Optional[InsertOptions] = None, throttle: float = 0.0) -> InsertOutcome:
        """
        Streams rows into a table.

        Args:
            table: The table to insert rows into.
            rows: The rows to insert, in order.
            options: Insert flags forwarded to the streaming API.
            throttle: Seconds to pause before issuing the call.

        Returns:
            The raw response and the rows the service rejected, if any.
        """
        pass

    @abstractmethod
    def list_rows(self, table: TableReference, max_results: Optional[int] = None) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def list_tables(self, dataset: DatasetReference, max_results: Optional[int] = None) -> List[TableSummary]:
        pass

    @abstractmethod
    def list_datasets(self, project_id: str, max_results: Optional[int] = None) -> List[DatasetSummary]:
        pass

    @abstractmethod
    def list_projects(self, max_results: Optional[int] = None) -> List[ProjectSummary]:
        pass

    @abstractmethod
    def list_table_fields(self, table: TableReference) -> List[FieldDescriptor]:
        """
        Lists the schema fields of a table.

        Args:
            table: The table to describe.

        Returns:
            The table's top-level fields, in schema order.
        """
        pass

    @abstractmethod
    def create_table(self, table: TableReference, fields: Sequence[FieldDescriptor]) -> None:
        """
        Creates a table with the given schema. Fails if the table already exists.

        Args:
            table: The table to create.
            fields: The table's fields, in schema order.
        """
        pass

    @abstractmethod
    def delete_table(self, table: TableReference) -> None:
        pass
