"""
Constants for the BigQuery connector package.
"""

BIGQUERY_SCOPE = 'https://www.googleapis.com/auth/bigquery'
DEFAULT_SCOPES = frozenset({BIGQUERY_SCOPE})

# Token endpoint used for signed-JWT assertions
GOOGLE_TOKEN_URI = 'https://oauth2.googleapis.com/token'

# Google-issued P12 keys all ship with these values
DEFAULT_KEYSTORE_PASSWORD = 'notasecret'
DEFAULT_KEYSTORE_ALIAS = 'privatekey'

BQ_FIELD_TYPES = frozenset({
    'STRING',
    'BYTES',
    'INTEGER',
    'INT64',
    'FLOAT',
    'FLOAT64',
    'NUMERIC',
    'BIGNUMERIC',
    'BOOLEAN',
    'BOOL',
    'TIMESTAMP',
    'DATE',
    'TIME',
    'DATETIME',
    'GEOGRAPHY',
    'INTERVAL',
    'RANGE',
    'RECORD',
    'STRUCT',
    'JSON',
})

BQ_FIELD_MODES = frozenset({'NULLABLE', 'REQUIRED', 'REPEATED'})

BQ_RANGE_ELEMENT_TYPES = frozenset({'DATE', 'DATETIME', 'TIMESTAMP'})

CREATE_DISPOSITIONS = frozenset({'CREATE_IF_NEEDED', 'CREATE_NEVER'})
WRITE_DISPOSITIONS = frozenset({'WRITE_APPEND', 'WRITE_TRUNCATE', 'WRITE_EMPTY'})

# Streaming inserts only ever append to a table that already exists
STREAMING_CREATE_DISPOSITIONS = frozenset({'CREATE_NEVER'})
STREAMING_WRITE_DISPOSITIONS = frozenset({'WRITE_APPEND'})
