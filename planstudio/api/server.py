from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple
from flask import Flask, request, jsonify, Response

from planstudio.config.env import get_export_config
from planstudio.converters.jira import RecordConverter, options_from_dict
from planstudio.errors import InvalidOptionError
from planstudio.exports.files import CsvPayload
from planstudio.exports.service import NO_ROWS, ExportResult, ExportService
from planstudio.ingestion.jira_client import parse_projects, parse_search_issues, parse_users

import logging
import os

logger = logging.getLogger(__name__)

app = Flask(__name__)

_PARSERS = {
    "issues": parse_search_issues,
    "users": parse_users,
    "projects": parse_projects,
}

# Configuration helpers (overridable via app.config in tests)

def _get_api_key() -> str | None:
    if 'API_KEY' in app.config:
        return app.config.get('API_KEY')
    return os.environ.get('API_KEY')


def _max_preview_rows() -> int:
    n = app.config.get('EXPORT_PREVIEW_ROWS')
    if n is None:
        return get_export_config().max_preview_rows
    return int(n)


def _service(**kwargs) -> ExportService:
    return ExportService(extension=get_export_config().default_extension, **kwargs)


def _check_api_key():
    api_key = _get_api_key()
    if api_key:
        provided = request.headers.get('X-API-Key')
        if provided != api_key:
            logger.info('Rejected %s %s: bad or missing API key', request.method, request.path)
            return jsonify({'error': 'unauthorized'}), 401
    return None


@app.before_request
def _auth():
    if request.path.startswith('/exports'):
        return _check_api_key()
    return None


def _bad_request(msg: str):
    return jsonify({'error': msg}), 400


def _read_table(payload: Dict[str, Any]) -> Tuple[Optional[List[str]], Optional[List[Dict[str, Any]]], Optional[str]]:
    headers = payload.get('headers')
    rows = payload.get('rows', [])
    if not isinstance(headers, list) or not all(isinstance(h, str) for h in headers):
        return None, None, 'headers must be a list'
    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        return None, None, 'rows must be a list of objects'
    return headers, rows, None


def _read_records(payload: Dict[str, Any], kind: str) -> Tuple[Optional[List[Dict[str, Any]]], Optional[str]]:
    if 'records' in payload:
        records = payload.get('records')
        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            return None, 'records must be a list of objects'
        return records, None
    return _PARSERS[kind](payload.get('payload')), None


def _attachment(result: ExportResult, delivered: List[CsvPayload]):
    if not result.success:
        return jsonify({"error": result.error}), 400 if result.error == NO_ROWS else 500
    body = delivered[-1]
    resp = Response(body.body, content_type=body.mimetype)
    resp.headers['Content-Disposition'] = f'attachment; filename="{body.filename}"'
    resp.headers['X-Row-Count'] = str(result.row_count)
    resp.headers['X-Estimated-Size'] = result.file_size or ''
    return resp


@app.get('/health')
def health():
    return jsonify({'status': 'ok'})


@app.post('/exports/csv')
def post_csv_export():
    payload = request.get_json(force=True, silent=True) or {}
    headers, rows, err = _read_table(payload)
    if err:
        return _bad_request(err)
    delivered: List[CsvPayload] = []
    svc = _service(sink=delivered.append)
    include_headers = payload.get('include_headers', True)
    if not isinstance(include_headers, bool):
        return _bad_request('include_headers must be a boolean')
    result = svc.export_rows(
        headers, rows,
        filename=payload.get('filename') or 'custom_data',
        include_headers=include_headers,
    )
    return _attachment(result, delivered)


@app.post('/exports/jira/<kind>')
def post_jira_export(kind: str):
    if kind not in _PARSERS:
        return jsonify({'error': 'not_found'}), 404
    payload = request.get_json(force=True, silent=True) or {}
    try:
        converter = RecordConverter(options_from_dict(payload.get('options')))
    except InvalidOptionError as e:
        return _bad_request(str(e))
    records, err = _read_records(payload, kind)
    if err:
        return _bad_request(err)
    delivered: List[CsvPayload] = []
    svc = _service(converter=converter, sink=delivered.append)
    filename = payload.get('filename') or f'jira_{kind}'
    if kind == 'issues':
        result = svc.export_issues(records, filename)
    elif kind == 'users':
        result = svc.export_users(records, filename)
    else:
        result = svc.export_projects(records, filename)
    return _attachment(result, delivered)


@app.post('/exports/preview')
def post_preview():
    payload = request.get_json(force=True, silent=True) or {}
    kind = payload.get('kind')
    try:
        converter = RecordConverter(options_from_dict(payload.get('options')))
    except InvalidOptionError as e:
        return _bad_request(str(e))
    svc = _service(converter=converter)
    if kind:
        if kind not in _PARSERS:
            return _bad_request(f'unknown kind: {kind}')
        records, err = _read_records(payload, kind)
        if err:
            return _bad_request(err)
        headers, rows = svc.rows_for(kind, records)
    else:
        headers, rows, err = _read_table(payload)
        if err:
            return _bad_request(err)
    try:
        max_rows = int(payload.get('max_rows', _max_preview_rows()))
    except (TypeError, ValueError):
        return _bad_request('max_rows must be an integer')
    return jsonify(svc.preview(headers, rows, max_rows=max(0, max_rows)))


if __name__ == '__main__':  # pragma: no cover
    logging.basicConfig(level=os.environ.get('LOG_LEVEL', 'INFO'))
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', '8000')))
