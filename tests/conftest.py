"""Shared fixtures: canned Elasticsearch responses and a mocked requests session."""

from unittest.mock import Mock

import pytest
import requests


def node_stats(name, total, available, free=None, host='10.0.0.1', mounts=None):
    free = available if free is None else free
    if mounts is None:
        mounts = [{
            'path': '/var/lib/elasticsearch/nodes/0',
            'mount': '/var/lib/elasticsearch (/dev/sdb1)',
            'dev': '/dev/sdb1',
            'total_in_bytes': total,
            'free_in_bytes': free,
            'available_in_bytes': available,
        }]
    return {
        'name': name,
        'host': host,
        'fs': {
            'timestamp': 1700000000000,
            'total': {
                'total_in_bytes': total,
                'free_in_bytes': free,
                'available_in_bytes': available,
            },
            'data': mounts,
        },
    }


def response(status=200, body=None, text=None):
    resp = Mock(spec=requests.Response)
    resp.status_code = status
    if body is None:
        resp.json.side_effect = ValueError('Expecting value: line 1 column 1 (char 0)')
        resp.text = text if text is not None else ''
    else:
        resp.json.return_value = body
        resp.text = text if text is not None else repr(body)
    return resp


@pytest.fixture
def session():
    return Mock(spec=requests.Session)
