import requests

import json
import logging
from typing import Dict, List, NamedTuple, Optional

from errors import DecodeError, TransportError


class MountSpace(NamedTuple):
    path: str
    mount: str
    device: str
    total_bytes: int
    free_bytes: int
    available_bytes: int


class NodeSpace(NamedTuple):
    nodeid: str
    name: str
    host: str
    total_bytes: int
    free_bytes: int
    available_bytes: int
    mounts: List[MountSpace]

    @property
    def percent(self) -> int:
        return self.available_bytes * 100 // self.total_bytes


AGGREGATES = {
    'min':  lambda nodes: min(node.percent for node in nodes),
    'last': lambda nodes: nodes[-1].percent,
}


def filesize(n: int) -> str:
    if n < 1024:
        return f'{n}B'
    elif n < 1024**2:
        return f'{n / float(1024):.2f}KB'
    elif n < 1024**3:
        return f'{n / float(1024**2):.2f}MB'
    elif n < 1024**4:
        return f'{n / float(1024**3):.2f}GB'
    else:
        return f'{n / float(1024**4):.2f}TB'


def _size(record: Dict, key: str, where: str) -> int:
    value = record.get(key)
    # bool is an int subclass, json true/false is never a size
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise DecodeError(f'{where}: {key} is not a byte count: {value!r}')
    return value


def _node(nodeid: str, record: Dict) -> NodeSpace:
    where = f'node {nodeid}'
    if not isinstance(record, dict):
        raise DecodeError(f'{where}: expected an object, got {type(record).__name__}')

    fs = record.get('fs')
    if not isinstance(fs, dict) or not isinstance(fs.get('total'), dict):
        raise DecodeError(f'{where}: fs.total missing')
    total = fs['total']

    # null decodes to no mounts
    datalist = fs.get('data') or []
    if not isinstance(datalist, list):
        raise DecodeError(f'{where}: fs.data is not a list')

    mounts = []
    for data in datalist:
        if not isinstance(data, dict):
            raise DecodeError(f'{where}: fs.data entry is not an object')
        mounts += [MountSpace(
            path            = str(data.get('path', '')),
            mount           = str(data.get('mount', '')),
            device          = str(data.get('dev', '')),
            total_bytes     = _size(data, 'total_in_bytes', where),
            free_bytes      = _size(data, 'free_in_bytes', where),
            available_bytes = _size(data, 'available_in_bytes', where),
        )]

    node = NodeSpace(
        nodeid          = nodeid,
        name            = str(record.get('name', nodeid)),
        host            = str(record.get('host', '')),
        total_bytes     = _size(total, 'total_in_bytes', where),
        free_bytes      = _size(total, 'free_in_bytes', where),
        available_bytes = _size(total, 'available_in_bytes', where),
        mounts          = mounts,
    )

    if node.total_bytes == 0:
        raise DecodeError(f'{where}: total_in_bytes is zero')
    if node.available_bytes > node.total_bytes:
        raise DecodeError(f'{where}: available_in_bytes {node.available_bytes} exceeds total_in_bytes {node.total_bytes}')

    return node


class Cluster:
    def __init__(self, server: str, timeout: float = 100, session: Optional[requests.Session] = None):
        self.server = server.rstrip('/')
        self.timeout = timeout

        self.__session = session if session is not None else requests.Session()


    def __request(self, method: str, path: str) -> requests.Response:
        url = f'{self.server}/{path}'
        try:
            resp = self.__session.request(method, url, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f'{method} {url} failed: {e}') from e

        logging.debug('%s %s -> %d', method, url, resp.status_code)
        if not 200 <= resp.status_code < 300:
            raise TransportError(f'{method} {url} returned status {resp.status_code}: {resp.text}')

        return resp


    def __json(self, path: str) -> Dict:
        resp = self.__request('GET', path)
        try:
            body = resp.json()
        except ValueError as e:
            raise DecodeError(f'GET {path}: response is not json: {e}') from e

        if not isinstance(body, dict):
            raise DecodeError(f'GET {path}: expected an object, got {type(body).__name__}')
        return body


    def nodes(self) -> List[NodeSpace]:
        body = self.__json('_nodes/stats')

        nodes = body.get('nodes')
        if not isinstance(nodes, dict):
            raise DecodeError('GET _nodes/stats: nodes missing')

        return [_node(nodeid, record) for nodeid, record in nodes.items()]


    def free_space_percent(self, aggregate: str = 'min') -> int:
        logging.info('checking data storage free space')

        nodes = self.nodes()
        if len(nodes) == 0:
            raise DecodeError('GET _nodes/stats: no nodes reported')

        for node in nodes:
            logging.info('node: %s [%s]', node.name, node.host)
            for mount in node.mounts:
                logging.info('node: %s, path: %s, device: %s, free: %s',
                             node.nodeid, mount.path, mount.device, filesize(mount.available_bytes))
            logging.info('node %s free data space: %d%% (%s)', node.nodeid, node.percent, filesize(node.available_bytes))

        percent = AGGREGATES[aggregate](nodes)
        logging.info('free data space (%s over %d nodes): %d%%', aggregate, len(nodes), percent)
        return percent


    def aliases(self) -> List[str]:
        return list(self.__json('_aliases').keys())


    def delete_index(self, index: str) -> None:
        logging.info('delete index %s request', index)
        resp = self.__request('DELETE', index)

        try:
            logging.debug('delete index %s response: %s', index, json.dumps(resp.json()))
        except ValueError:
            logging.debug('delete index %s response: %r', index, resp.text)

        logging.info('index %s deleted successfully', index)
