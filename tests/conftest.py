"""Pytest configuration for repo-drive tests."""
import sys
from pathlib import Path

# Add src/ to path for src-layout imports
_PROJECT_ROOT = Path(__file__).parent.parent
_SRC = _PROJECT_ROOT / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))
_TESTS = Path(__file__).parent
if str(_TESTS) not in sys.path:
    sys.path.insert(0, str(_TESTS))

import pytest

from fakes import FakeClock, FakeGitHub


@pytest.fixture
def clock():
    """Controllable UTC clock."""
    return FakeClock()


@pytest.fixture
def fake_github():
    """In-process GitHub API with one user and a few files."""
    gh = FakeGitHub()
    gh.add_user('ghp_alice_secret_credential_0123456789', 'alice')
    gh.add_file('alice', 'vault', 'main', 'uploads/docs/report.pdf', b'%PDF-1.7 report body')
    gh.add_file('alice', 'vault', 'main', 'uploads/photos/cat.png', b'\x89PNG\r\n\x1a\n' + bytes(range(256)))
    gh.add_file('alice', 'vault', 'main', 'uploads/notes.txt', b'hello from the repo\n')
    return gh
