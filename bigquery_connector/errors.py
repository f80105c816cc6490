import enum


class BigQueryConnectorError(Exception):
    pass


class AuthFailureReason(enum.Enum):
    KEY_LOAD_FAILURE = 'KeyLoadFailure'
    TRANSPORT_INIT_FAILURE = 'TransportInitFailure'
    TOKEN_EXCHANGE_FAILURE = 'TokenExchangeFailure'


class AuthError(BigQueryConnectorError):
    """
    Raised when a service identity cannot be turned into a usable credential.
    """

    def __init__(self, reason, cause):
        self.reason = reason
        self.cause = cause
        super().__init__(f'{reason.value}: {cause}')


class NotConnectedError(BigQueryConnectorError):
    pass


class OperationError(BigQueryConnectorError):
    """
    Raised when a warehouse call fails. Carries the operation name, the
    table/dataset/project it targeted and the underlying transport error.
    """

    def __init__(self, operation, target, cause):
        self.operation = operation
        self.target = target
        self.cause = cause
        super().__init__(f'Error running {operation} on {target}: {cause}')


class WarehouseValidationError(BigQueryConnectorError, ValueError):
    pass
