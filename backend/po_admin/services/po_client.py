from __future__ import annotations
"""HTTP client for the authoritative PO REST backend.

Reads go through the QueryCache, keyed per bearer token; every write invalidates the PO's cache keys so the next
read re-syncs from the backend. Records come back as plain dicts; callers build model
objects from them.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

import requests

from po_admin.utils.cache import AUDIT_LOG, PO, QueryCache, list_key, token_scope

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class UpstreamNotFound(UpstreamError):
    def __init__(self, message: str = 'Not found'):
        super().__init__(404, message)


class PODataClient:
    def __init__(self, base_url: str, cache: Optional[QueryCache] = None, timeout: float = 10,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.cache = cache if cache is not None else QueryCache()
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault('Content-Type', 'application/json')

    def _request(self, method: str, path: str, token: Optional[str] = None, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        headers = kwargs.pop('headers', {})
        if token:
            headers['Authorization'] = f'Bearer {token}'
        try:
            resp = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error('PO backend unreachable: %s %s (%s)', method, url, e)
            raise UpstreamError(502, 'PO backend unreachable') from e
        if resp.status_code == 404:
            raise UpstreamNotFound()
        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.warning('PO backend %s %s -> %s: %s', method, url, resp.status_code, message)
            raise UpstreamError(resp.status_code, message)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError(502, 'PO backend returned invalid JSON') from e

    # --- reads ---

    def list_purchase_orders(self, params: Optional[Mapping[str, Any]] = None, token: Optional[str] = None) -> Dict[str, Any]:
        clean = {k: v for k, v in (params or {}).items() if v is not None}

        def load():
            body = self._request('GET', '/po', token, params=clean)
            # accept both a bare list and {"items" | "data": [...], "total": n}
            if isinstance(body, list):
                return {'items': body, 'total': len(body)}
            if not isinstance(body, dict):
                return {'items': [], 'total': 0}
            rows = body.get('items') or body.get('data') or []
            return {'items': rows, 'total': body.get('total', len(rows))}
        return self.cache.get_or_load(list_key(clean, token_scope(token)), load)

    def get_purchase_order(self, po_id: str, token: Optional[str] = None) -> Dict[str, Any]:
        return self.cache.get_or_load((PO, str(po_id), token_scope(token)), lambda: self._request('GET', f'/po/{po_id}', token))

    def get_audit_log(self, po_id: str, token: Optional[str] = None) -> List[Dict[str, Any]]:
        def load():
            body = self._request('GET', f'/po/{po_id}/audit-log', token)
            # accept both a bare list and {"data": [...]}
            if isinstance(body, dict):
                body = body.get('data') or []
            return body or []
        return self.cache.get_or_load((AUDIT_LOG, str(po_id), token_scope(token)), load)

    # --- writes (dispatch only; the backend decides) ---

    def send_po_email(self, po_id: str, payload: Optional[Dict[str, Any]] = None, token: Optional[str] = None) -> Any:
        try:
            return self._request('POST', f'/po/{po_id}/send-email', token, json=payload or {})
        finally:
            self.cache.invalidate_po(po_id)

    def acknowledge_po(self, po_id: str, token: Optional[str] = None) -> Any:
        try:
            return self._request('POST', f'/po/{po_id}/acknowledge', token, json={})
        finally:
            self.cache.invalidate_po(po_id)

    def transition_po(self, po_id: str, status: str, token: Optional[str] = None) -> Any:
        try:
            return self._request('POST', f'/po/{po_id}/status', token, json={'status': status})
        finally:
            self.cache.invalidate_po(po_id)


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason or 'Upstream error'
    if isinstance(body, dict):
        return body.get('message') or body.get('detail') or str(body.get('error') or 'Upstream error')
    return 'Upstream error'


__all__ = ['PODataClient', 'UpstreamError', 'UpstreamNotFound']
