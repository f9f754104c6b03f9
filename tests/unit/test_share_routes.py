"""Tests for the share issuance endpoint.

Validates:
  - POST /share/create returns 201 {token, url, expiresAt, username}.
  - /api/share is the same handler.
  - Missing bearer credential and missing body fields -> 400 listing them.
  - Rejected credential -> 401; GitHub unreachable -> 500.
  - URL uses the configured public origin, else the request origin.
"""

from __future__ import annotations

import re
from datetime import timedelta

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from fakes import FakeGitHub
from repo_drive.settings import DriveSettings
from repo_drive.sharing.audit import InMemoryShareAuditEmitter
from repo_drive.sharing.registry import InMemoryShareRegistry
from repo_drive.sharing.routes import create_share_router, extract_bearer_token
from repo_drive.sharing.service import ShareIssuanceService

CREDENTIAL = 'ghp_alice_secret_credential_0123456789'
AUTH = {'Authorization': f'Bearer {CREDENTIAL}'}
BODY = {'owner': 'alice', 'repo': 'vault', 'path': 'docs/report.pdf', 'expirationHours': 1}


# ── Helpers ───────────────────────────────────────────────────────────


def _make_app(
    fake_github: FakeGitHub,
    clock,
    settings: DriveSettings | None = None,
) -> tuple[FastAPI, ShareIssuanceService]:
    """Build a test app with the issuance router only."""
    app = FastAPI()
    service = ShareIssuanceService(
        InMemoryShareRegistry(),
        fake_github.client(),
        clock=clock,
        audit=InMemoryShareAuditEmitter(),
    )
    app.include_router(create_share_router(service, settings or DriveSettings()))
    return app, service


@pytest.fixture
def app_and_service(fake_github, clock):
    return _make_app(fake_github, clock)


async def _post(app: FastAPI, path: str = '/share/create', *, json=None, headers=None):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as c:
        return await c.post(path, json=BODY if json is None else json, headers=headers)


# =====================================================================
# Success
# =====================================================================


class TestCreateShare:
    """POST /share/create."""

    @pytest.mark.asyncio
    async def test_create_returns_201(self, app_and_service, clock):
        app, service = app_and_service
        r = await _post(app, headers=AUTH)

        assert r.status_code == 201
        data = r.json()
        assert set(data) == {'token', 'url', 'expiresAt', 'username'}
        assert data['username'] == 'alice'
        assert re.fullmatch(r'[0-9a-f]{64}', data['token'])
        assert data['url'] == f"http://test/share/alice/{data['token']}"
        assert data['expiresAt'] == (clock.now + timedelta(hours=1)).isoformat()
        assert service.registry.get('alice', data['token']) is not None

    @pytest.mark.asyncio
    async def test_api_share_alias(self, app_and_service):
        app, _ = app_and_service
        r = await _post(app, '/api/share', headers=AUTH)
        assert r.status_code == 201

    @pytest.mark.asyncio
    async def test_snake_case_expiration_accepted(self, app_and_service):
        app, _ = app_and_service
        body = {k: v for k, v in BODY.items() if k != 'expirationHours'}
        body['expiration_hours'] = 2
        r = await _post(app, json=body, headers=AUTH)
        assert r.status_code == 201

    @pytest.mark.asyncio
    async def test_branch_passed_through(self, app_and_service):
        app, service = app_and_service
        r = await _post(app, json={**BODY, 'branch': 'dev'}, headers=AUTH)
        record = service.registry.get('alice', r.json()['token'])
        assert record.branch == 'dev'

    @pytest.mark.asyncio
    async def test_public_base_url_setting(self, fake_github, clock):
        settings = DriveSettings(public_base_url='https://drive.example.com')
        app, _ = _make_app(fake_github, clock, settings)
        r = await _post(app, headers=AUTH)
        assert r.json()['url'].startswith('https://drive.example.com/share/alice/')

    @pytest.mark.asyncio
    async def test_response_never_contains_credential(self, app_and_service):
        app, _ = app_and_service
        r = await _post(app, headers=AUTH)
        assert CREDENTIAL not in r.text
        assert CREDENTIAL not in str(r.headers)


# =====================================================================
# Errors
# =====================================================================


class TestCreateShareErrors:

    @pytest.mark.asyncio
    async def test_missing_bearer(self, app_and_service):
        app, service = app_and_service
        r = await _post(app)
        assert r.status_code == 400
        assert r.json()['error'] == 'invalid_request'
        assert 'authorization' in r.json()['detail']
        assert service.registry.count() == 0

    @pytest.mark.asyncio
    async def test_non_bearer_scheme(self, app_and_service):
        app, _ = app_and_service
        r = await _post(app, headers={'Authorization': f'token {CREDENTIAL}'})
        assert r.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_fields_listed(self, app_and_service):
        app, _ = app_and_service
        r = await _post(app, json={'owner': 'alice'}, headers=AUTH)
        assert r.status_code == 400
        detail = r.json()['detail']
        for field in ('repo', 'path', 'expirationHours'):
            assert field in detail
        assert 'owner' not in detail.split(':', 1)[1]

    @pytest.mark.asyncio
    async def test_zero_hours(self, app_and_service):
        app, _ = app_and_service
        r = await _post(app, json={**BODY, 'expirationHours': 0}, headers=AUTH)
        assert r.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize('literal', ['NaN', 'Infinity', '-Infinity'])
    async def test_non_finite_hours(self, app_and_service, fake_github, literal):
        app, service = app_and_service
        raw = (
            '{"owner": "alice", "repo": "vault", "path": "docs/report.pdf", '
            f'"expirationHours": {literal}}}'
        )
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url='http://test') as c:
            r = await c.post(
                '/share/create',
                content=raw,
                headers={'Content-Type': 'application/json', **AUTH},
            )

        assert r.status_code == 400
        assert r.json()['error'] == 'invalid_request'
        assert 'expirationHours' in r.json()['detail']
        assert fake_github.requests == []
        assert service.registry.count() == 0

    @pytest.mark.asyncio
    async def test_rejected_credential(self, app_and_service):
        app, _ = app_and_service
        r = await _post(app, headers={'Authorization': 'Bearer ghp_not_valid'})
        assert r.status_code == 401
        assert r.json() == {'error': 'unauthorized', 'detail': 'Invalid or expired GitHub token.'}
        assert 'ghp_not_valid' not in r.text

    @pytest.mark.asyncio
    async def test_github_unreachable(self, app_and_service, fake_github):
        app, _ = app_and_service
        fake_github.raise_exc = httpx.ConnectError('connection refused')
        r = await _post(app, headers=AUTH)
        assert r.status_code == 500
        assert r.json()['error'] == 'internal_error'
        assert 'connection refused' not in r.text


class TestExtractBearer:

    @pytest.mark.parametrize('header,expected', [
        ('Bearer abc', 'abc'),
        ('bearer abc', 'abc'),
        ('Bearer   abc  ', 'abc'),
        ('Bearer ', None),
        ('Basic abc', None),
        ('', None),
    ])
    def test_extract(self, header, expected):
        from starlette.requests import Request

        headers = [(b'authorization', header.encode())] if header else []
        request = Request({'type': 'http', 'headers': headers})
        assert extract_bearer_token(request) == expected
