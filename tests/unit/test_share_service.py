"""Tests for ShareIssuanceService.

Validates:
  - Successful issuance stores a record bound to the credential.
  - Missing fields are reported together; bad durations rejected.
  - Rejected credential -> ShareUnauthorized; GitHub down -> generic error.
  - resolve(): not found, expiry boundary, eviction, idempotence.
  - Independent issuances for the same file.
"""

from __future__ import annotations

import re
from datetime import timedelta

import httpx
import pytest

from fakes import FakeGitHub
from repo_drive.sharing.audit import SHARE_CREATED, InMemoryShareAuditEmitter
from repo_drive.sharing.model import (
    InvalidShareRequest,
    RepoCoordinate,
    ShareContentUnavailable,
    ShareLinkExpired,
    ShareLinkNotFound,
    ShareUnauthorized,
)
from repo_drive.sharing.registry import InMemoryShareRegistry
from repo_drive.sharing.service import ShareIssuanceService

CREDENTIAL = 'ghp_alice_secret_credential_0123456789'
BASE_URL = 'https://drive.example.com'
VAULT = RepoCoordinate(owner='alice', repo='vault', branch='main')


@pytest.fixture
def audit():
    return InMemoryShareAuditEmitter()


@pytest.fixture
def service(fake_github: FakeGitHub, clock, audit):
    return ShareIssuanceService(
        InMemoryShareRegistry(),
        fake_github.client(),
        clock=clock,
        max_expiration_hours=720,
        audit=audit,
    )


async def _issue(service, hours=1.0, path='docs/report.pdf', coordinate=VAULT):
    return await service.create(CREDENTIAL, coordinate, path, hours, base_url=BASE_URL)


class TestCreate:

    @pytest.mark.asyncio
    async def test_create_returns_token_url_and_expiry(self, service, clock):
        issued = await _issue(service, hours=2)

        assert re.fullmatch(r'[0-9a-f]{64}', issued.token)
        assert issued.issuer == 'alice'
        assert issued.url == f'{BASE_URL}/share/alice/{issued.token}'
        assert issued.expires_at == clock.now + timedelta(hours=2)

    @pytest.mark.asyncio
    async def test_create_stores_record_with_credential(self, service, clock):
        issued = await _issue(service)
        record = service.registry.get('alice', issued.token)

        assert record is not None
        assert record.credential == CREDENTIAL
        assert record.file_path == 'docs/report.pdf'
        assert (record.owner, record.repo, record.branch) == ('alice', 'vault', 'main')
        assert record.created_at == clock.now

    @pytest.mark.asyncio
    async def test_response_payload_shape(self, service):
        issued = await _issue(service)
        body = issued.to_response()
        assert set(body) == {'token', 'url', 'expiresAt', 'username'}
        assert body['username'] == 'alice'
        assert CREDENTIAL not in str(body)

    @pytest.mark.asyncio
    async def test_branch_defaults(self, service):
        issued = await _issue(service, coordinate=RepoCoordinate('alice', 'vault', ''))
        assert service.registry.get('alice', issued.token).branch == 'main'

    @pytest.mark.asyncio
    async def test_leading_slash_stripped(self, service):
        issued = await _issue(service, path='/docs/report.pdf')
        assert service.registry.get('alice', issued.token).file_path == 'docs/report.pdf'

    @pytest.mark.asyncio
    async def test_fractional_hours(self, service, clock):
        issued = await _issue(service, hours=0.5)
        assert issued.expires_at == clock.now + timedelta(minutes=30)

    @pytest.mark.asyncio
    async def test_same_file_twice_gives_independent_links(self, service):
        first = await _issue(service)
        second = await _issue(service)

        assert first.token != second.token
        assert service.resolve('alice', first.token).file_path == 'docs/report.pdf'
        assert service.resolve('alice', second.token).file_path == 'docs/report.pdf'
        assert service.registry.count() == 2

    @pytest.mark.asyncio
    async def test_thousand_issuances_unique(self, service):
        tokens = {(await _issue(service)).token for _ in range(1000)}
        assert len(tokens) == 1000
        assert service.registry.count() == 1000

    @pytest.mark.asyncio
    async def test_emits_created_event_with_redacted_token(self, service, audit):
        issued = await _issue(service)
        events = audit.find(event_type=SHARE_CREATED)

        assert len(events) == 1
        assert events[0].issuer == 'alice'
        assert events[0].path == 'docs/report.pdf'
        assert events[0].token_prefix == issued.token[:8] + '...'
        assert issued.token not in str(events[0].to_dict())
        assert CREDENTIAL not in str(events[0].to_dict())


class TestCreateValidation:

    @pytest.mark.asyncio
    async def test_missing_fields_reported_together(self, service):
        with pytest.raises(InvalidShareRequest) as exc_info:
            await service.create(
                None, RepoCoordinate('', 'vault', ''), None, None, base_url=BASE_URL,
            )
        assert exc_info.value.fields == ['authorization', 'owner', 'path', 'expirationHours']
        assert 'owner' in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_blank_path_is_missing(self, service):
        with pytest.raises(InvalidShareRequest) as exc_info:
            await _issue(service, path='   ')
        assert exc_info.value.fields == ['path']

    @pytest.mark.asyncio
    @pytest.mark.parametrize('hours', [0, -1, -0.5])
    async def test_non_positive_duration(self, service, hours):
        with pytest.raises(InvalidShareRequest) as exc_info:
            await _issue(service, hours=hours)
        assert exc_info.value.fields == ['expirationHours']

    @pytest.mark.asyncio
    @pytest.mark.parametrize('hours', [float('nan'), float('inf'), float('-inf')])
    async def test_non_finite_duration(self, service, fake_github, hours):
        with pytest.raises(InvalidShareRequest) as exc_info:
            await _issue(service, hours=hours)
        assert exc_info.value.fields == ['expirationHours']
        assert 'finite' in exc_info.value.detail
        assert fake_github.requests == []
        assert service.registry.count() == 0

    @pytest.mark.asyncio
    async def test_duration_over_maximum(self, service):
        with pytest.raises(InvalidShareRequest):
            await _issue(service, hours=721)

    @pytest.mark.asyncio
    async def test_parent_segments_rejected(self, service):
        with pytest.raises(InvalidShareRequest):
            await _issue(service, path='docs/../../secrets.env')

    @pytest.mark.asyncio
    async def test_validation_happens_before_github_call(self, service, fake_github):
        with pytest.raises(InvalidShareRequest):
            await _issue(service, hours=0)
        assert fake_github.requests == []


class TestCreateIdentityFailures:

    @pytest.mark.asyncio
    async def test_rejected_credential(self, service, fake_github):
        with pytest.raises(ShareUnauthorized):
            await service.create(
                'ghp_wrong', VAULT, 'docs/report.pdf', 1, base_url=BASE_URL,
            )
        assert service.registry.count() == 0
        assert len(fake_github.requests) == 1  # no retry

    @pytest.mark.asyncio
    async def test_github_unreachable(self, service, fake_github):
        fake_github.raise_exc = httpx.ConnectError('connection refused')
        with pytest.raises(ShareContentUnavailable):
            await _issue(service)
        assert service.registry.count() == 0


class TestResolve:

    @pytest.mark.asyncio
    async def test_unknown_token(self, service):
        with pytest.raises(ShareLinkNotFound):
            service.resolve('alice', 'f' * 64)

    @pytest.mark.asyncio
    async def test_wrong_issuer(self, service):
        issued = await _issue(service)
        with pytest.raises(ShareLinkNotFound):
            service.resolve('bob', issued.token)

    @pytest.mark.asyncio
    async def test_active_one_second_before_expiry(self, service, clock):
        issued = await _issue(service, hours=3)
        clock.advance(hours=3, seconds=-1)
        assert service.resolve('alice', issued.token).file_path == 'docs/report.pdf'

    @pytest.mark.asyncio
    async def test_gone_one_second_after_expiry(self, service, clock):
        issued = await _issue(service, hours=3)
        clock.advance(hours=3, seconds=1)
        with pytest.raises(ShareLinkExpired):
            service.resolve('alice', issued.token)

    @pytest.mark.asyncio
    async def test_expired_is_evicted(self, service, clock):
        issued = await _issue(service)
        record = service.registry.get('alice', issued.token)
        clock.advance(minutes=61)

        with pytest.raises(ShareLinkExpired):
            service.resolve('alice', issued.token)

        assert service.registry.get('alice', issued.token) is None
        assert record.credential == ''

    @pytest.mark.asyncio
    async def test_after_eviction_not_found_every_time(self, service, clock):
        issued = await _issue(service)
        clock.advance(hours=2)
        with pytest.raises(ShareLinkExpired):
            service.resolve('alice', issued.token)
        for _ in range(2):
            with pytest.raises(ShareLinkNotFound):
                service.resolve('alice', issued.token)

    @pytest.mark.asyncio
    async def test_expiry_of_one_link_leaves_others(self, service, clock):
        short = await _issue(service, hours=1)
        long = await _issue(service, hours=5)
        clock.advance(hours=2)

        with pytest.raises(ShareLinkExpired):
            service.resolve('alice', short.token)
        assert service.resolve('alice', long.token) is not None
