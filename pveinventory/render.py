import json

from .client import MalformedRecordError


def identity_of(record, identity_key):
    """
    Get a record's identity, refusing records without a usable one.

    :param record: Resource dictionary
    :param identity_key: Attribute naming the resource (e.g., 'node')
    :return: Identity string
    """
    if not isinstance(record, dict):
        raise MalformedRecordError(f"expected an object, got {type(record).__name__}")
    value = record.get(identity_key)
    if not isinstance(value, str) or not value:
        raise MalformedRecordError(f"missing or invalid '{identity_key}' in record {format_value(record)}")
    return value


def format_value(value):
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if value is None:
        return 'null'
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, separators=(',', ':'), default=str)
    return str(value)


def render_attributes(record, out, indent=1, exclude=()):
    prefix = '\t' * indent
    for key in sorted(record, key=str):
        if key in exclude:
            continue
        print(f"{prefix}{key}: {format_value(record[key])}", file=out)


def render_record(record, identity_key, out, indent=0):
    """
    Print the identity as a header line, then every other attribute one level deeper.

    :param record: Resource dictionary
    :param identity_key: Attribute naming the resource
    :param out: Text stream
    :param indent: Tab depth of the header line
    """
    name = identity_of(record, identity_key)
    prefix = '\t' * indent
    print(f"{prefix}{name}", file=out)
    render_attributes(record, out, indent + 1, exclude=(identity_key,))
