import datetime
import uuid

import pytz


def to_utc(value):
    if value.tzinfo is not None:
        return value.astimezone(pytz.UTC)
    # If naive datetime (no timezone), assume it's in UTC
    return pytz.UTC.localize(value)


def handle_datetime_value(value):
    return to_utc(value).strftime('%Y-%m-%d %H:%M:%S')


def sanitize_value(value):
    """
    Makes a row value JSON-serializable for the streaming API. Datetimes are
    converted to UTC strings, dates to ISO strings and UUIDs to strings.
    Mappings and lists are sanitized recursively.
    """
    if isinstance(value, datetime.datetime):
        return handle_datetime_value(value)
    elif isinstance(value, datetime.date):
        return value.isoformat()
    elif isinstance(value, uuid.UUID):
        return str(value)
    elif isinstance(value, dict):
        return {key: sanitize_value(item) for key, item in value.items()}
    elif isinstance(value, (list, tuple)):
        return [sanitize_value(item) for item in value]
    return value


def synthesize_insert_id():
    return str(uuid.uuid4())


def assign_insert_ids(rows):
    """
    Returns one insert id per row, keeping the ids rows already carry and
    synthesizing the missing ones. A synthesized id never repeats an id
    already present in the batch.
    """
    taken = {row.insert_id for row in rows if row.insert_id is not None}
    insert_ids = []
    for row in rows:
        insert_id = row.insert_id
        if insert_id is None:
            insert_id = synthesize_insert_id()
            while insert_id in taken:
                insert_id = synthesize_insert_id()
            taken.add(insert_id)
        insert_ids.append(insert_id)
    return insert_ids
